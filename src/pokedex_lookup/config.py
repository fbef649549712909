"""Configuration helpers for catalog access."""

from __future__ import annotations

import os
from argparse import Namespace
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_MAX_ID",
    "DEFAULT_TIMEOUT",
    "CatalogConfig",
    "build_catalog_config",
]

DEFAULT_BASE_URL = "https://pokeapi.co/api/v2"
# National dex size of the catalog snapshot the id arithmetic is built against.
DEFAULT_MAX_ID = 1010
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class CatalogConfig:
    """Settings describing how the catalog should be reached."""

    base_url: str = DEFAULT_BASE_URL
    max_id: int = DEFAULT_MAX_ID
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL.")
        if self.max_id <= 0:
            raise ValueError("max_id must be a positive integer.")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive.")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


def _env_number(env: Mapping[str, str], key: str, cast: type) -> float | int | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number.") from exc


def build_catalog_config(
    args: Namespace | None = None,
    env: Mapping[str, str] | None = None,
) -> CatalogConfig:
    """Construct catalog settings by merging CLI arguments and environment variables."""

    env = env if env is not None else os.environ

    base_url = getattr(args, "base_url", None) or env.get("POKEDEX_BASE_URL") or DEFAULT_BASE_URL

    max_id = getattr(args, "max_id", None)
    if max_id is None:
        max_id = _env_number(env, "POKEDEX_MAX_ID", int)
    if max_id is None:
        max_id = DEFAULT_MAX_ID

    timeout = getattr(args, "timeout", None)
    if timeout is None:
        timeout = _env_number(env, "POKEDEX_TIMEOUT", float)
    if timeout is None:
        timeout = DEFAULT_TIMEOUT

    log_level = getattr(args, "log_level", None) or env.get("POKEDEX_LOG_LEVEL") or "INFO"

    return CatalogConfig(
        base_url=base_url,
        max_id=int(max_id),
        timeout=float(timeout),
        log_level=log_level.upper(),
    )
