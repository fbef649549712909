"""Error taxonomy shared by the catalog client, the API and the CLI.

Every error carries a ``category`` and the HTTP status the API answers with,
so callers never need to map exception types themselves.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

__all__ = [
    "PokedexError",
    "NotFoundError",
    "NetworkError",
    "InputValidationError",
    "DependencyError",
    "sanitize_context",
]

# Context keys whose values never reach logs or error payloads in clear.
_REDACTED_KEYS = frozenset({"authorization", "api_key", "cookie", "password", "token"})


def _redact(value: Any) -> Any:
    if not isinstance(value, str):
        return "***"
    if len(value) <= 4:
        return "*" * len(value)
    return value[:2] + "***" + value[-2:]


def _clean(key: str, value: Any) -> Any:
    if isinstance(value, Mapping):
        return sanitize_context(value)
    if isinstance(value, (list, tuple)):
        return [_clean(key, item) for item in value]
    return _redact(value) if key.lower() in _REDACTED_KEYS else value


def sanitize_context(context: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy ``context`` with credential-like values masked, recursively."""

    return {key: _clean(key, value) for key, value in context.items()}


@dataclass
class PokedexError(Exception):
    """Base class for structured, actionable errors raised by the package."""

    message: str
    remediation: str | None = None
    context: Dict[str, Any] | None = None
    category: str = "internal_error"
    http_status: int = 500

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self, *, trace_id: str | None = None) -> Dict[str, Any]:
        """JSON body for API error responses and structured log records."""

        optional = {
            "remediation": self.remediation,
            "context": sanitize_context(self.context) if self.context else None,
            "trace_id": trace_id,
        }
        payload: Dict[str, Any] = {"category": self.category, "message": self.message}
        payload.update({key: value for key, value in optional.items() if value})
        return payload


@dataclass
class NotFoundError(PokedexError):
    """A name, id, type or embedded reference did not resolve in the catalog."""

    category: str = "not_found"
    http_status: int = 404


@dataclass
class NetworkError(PokedexError):
    """Transport failure, timeout, server error or malformed catalog body."""

    category: str = "network_error"
    http_status: int = 502


@dataclass
class InputValidationError(PokedexError):
    category: str = "input_error"
    http_status: int = 400


@dataclass
class DependencyError(PokedexError):
    category: str = "dependency_error"
    http_status: int = 503
