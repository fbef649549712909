"""Structured logging, in-process metrics and health reporting."""
from __future__ import annotations

import json
import logging
import sys
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List

from .errors import sanitize_context

__all__ = [
    "configure_logging",
    "get_logger",
    "metrics",
    "metrics_snapshot",
    "render_metrics",
    "health_snapshot",
    "generate_trace_id",
]

_LOGGER_NAME = "pokedex_lookup"
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}
_setup_lock = threading.Lock()
_handler_installed = False


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields land under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        extras = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRS}
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": extras.pop("event", None) or "log",
            "message": record.getMessage(),
        }
        if extras:
            payload["context"] = sanitize_context(extras)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str)


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time."""

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, _value) -> None:
        pass


def configure_logging(level: int | str | None = None) -> logging.Logger:
    """Install the JSON handler on the package logger (once) and set its level."""

    global _handler_installed
    logger = logging.getLogger(_LOGGER_NAME)
    with _setup_lock:
        if not _handler_installed:
            handler = _StderrHandler()
            handler.setFormatter(StructuredLogFormatter())
            logger.addHandler(handler)
            logger.propagate = False
            _handler_installed = True
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
        if level is not None:
            logger.setLevel(level)
        elif logger.level == logging.NOTSET:
            logger.setLevel(logging.INFO)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    configure_logging()
    if not name or name == _LOGGER_NAME:
        return logging.getLogger(_LOGGER_NAME)
    if name.startswith(_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")


class MetricsRegistry:
    """Counters and duration summaries rendered in Prometheus text format."""

    def __init__(self) -> None:
        self._help: Dict[str, str] = {}
        self._counters: Dict[str, float] = {}
        self._summaries: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str) -> None:
        self._help[name] = help_text
        self._counters.setdefault(name, 0.0)

    def summary(self, name: str, help_text: str) -> None:
        self._help[name] = help_text
        self._summaries.setdefault(name, [])

    def increment(self, name: str, amount: float = 1.0) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0.0) + amount

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            self._summaries.setdefault(name, []).append(value)

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Observe the wall time of the ``with`` block, even when it raises."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - start)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "summaries": {name: list(values) for name, values in self._summaries.items()},
            }

    def render_prometheus(self) -> str:
        snapshot = self.snapshot()
        lines: List[str] = []
        for name, value in snapshot["counters"].items():
            lines += [f"# HELP {name} {self._help.get(name, name)}", f"# TYPE {name} counter", f"{name} {value}"]
        for name, values in snapshot["summaries"].items():
            lines += [
                f"# HELP {name} {self._help.get(name, name)}",
                f"# TYPE {name} summary",
                f"{name}_count {float(len(values))}",
                f"{name}_sum {float(sum(values))}",
            ]
        return "\n".join(lines) + "\n"


metrics = MetricsRegistry()
metrics.counter("pokedex_catalog_requests_total", "Catalog GETs issued.")
metrics.counter("pokedex_catalog_failures_total", "Catalog GETs that ended in an error.")
metrics.summary("pokedex_catalog_fetch_seconds", "Catalog GET duration in seconds.")
metrics.counter("pokedex_evolution_nodes_pruned_total", "Evolution links skipped with their subtree.")
metrics.counter("pokedex_api_requests_total", "API requests served.")
metrics.counter("pokedex_api_failures_total", "API requests answered with an error.")


def metrics_snapshot() -> Dict[str, Any]:
    return metrics.snapshot()


def render_metrics() -> str:
    return metrics.render_prometheus()


def health_snapshot(*, catalog: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Report whether the web stack is importable, the catalog settings and metrics."""

    from . import api

    dependencies = {"fastapi": api.FastAPI is not None}
    return {
        "status": "ok" if all(dependencies.values()) else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"dependencies": dependencies, "catalog": dict(catalog or {})},
        "metrics": metrics_snapshot(),
    }


def generate_trace_id() -> str:
    """Short random id echoed to users so they can quote it in reports."""

    return uuid.uuid4().hex[:12]
