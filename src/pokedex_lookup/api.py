"""REST API exposing catalog lookups, evolution chains and move catalogs."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from .catalog import CatalogClient
from .config import CatalogConfig
from .description import available_versions, flavor_text, generation_for, speech_text
from .errors import DependencyError, PokedexError
from .evolution import resolve_for_creature
from .moves import ALL_METHODS, catalog_for_creature
from .observability import (
    configure_logging,
    generate_trace_id,
    get_logger,
    health_snapshot,
    metrics,
    render_metrics,
)

try:  # pragma: no cover - optional dependency
    from fastapi import FastAPI, Request  # type: ignore[import-not-found]
    from fastapi.responses import JSONResponse, PlainTextResponse  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - gracefully handled at runtime
    FastAPI = None  # type: ignore
    Request = None  # type: ignore
    JSONResponse = None  # type: ignore
    PlainTextResponse = None  # type: ignore


LOGGER = get_logger(__name__)


_SECURE_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'",
}


def _validate_dependency() -> None:
    if FastAPI is None:
        raise DependencyError(
            "FastAPI is required to use pokedex_lookup.api.",
            remediation="Install the 'api' extra (fastapi and uvicorn) to serve lookups.",
        )


def create_app(
    catalog: Optional[CatalogClient] = None,
    config: Optional[CatalogConfig] = None,
) -> "FastAPI":
    """Return a configured FastAPI application serving Pokédex lookups.

    ``catalog`` is shared by every request; when omitted one is built from
    ``config`` and closed on shutdown.
    """

    _validate_dependency()
    assert FastAPI is not None  # for mypy

    settings = config or (catalog.config if catalog is not None else CatalogConfig())
    configure_logging(settings.log_level)
    owns_catalog = catalog is None
    client = catalog or CatalogClient(settings)

    @asynccontextmanager
    async def lifespan(_: "FastAPI") -> AsyncIterator[None]:
        yield
        if owns_catalog:
            await client.aclose()

    app = FastAPI(title="Pokédex Lookup", version="1.0.0", lifespan=lifespan)
    app.state.catalog = client

    assert Request is not None and JSONResponse is not None  # for mypy

    @app.middleware("http")
    async def trace_and_secure(request: Request, call_next):  # type: ignore[override]
        trace_id = generate_trace_id()
        request.state.trace_id = trace_id
        metrics.increment("pokedex_api_requests_total")
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            metrics.increment("pokedex_api_failures_total")
            LOGGER.exception(
                "api_unhandled_error",
                extra={"event": "api_unhandled_error", "trace_id": trace_id, "path": request.url.path},
            )
            response = JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "category": "internal_error",
                        "message": "Unexpected error while serving the request.",
                        "remediation": "Retry the request or report the trace identifier.",
                        "trace_id": trace_id,
                    }
                },
            )
        for header, value in _SECURE_HEADERS.items():
            response.headers.setdefault(header, value)
        response.headers["X-Trace-Id"] = trace_id
        LOGGER.info(
            "api_request_completed",
            extra={
                "event": "api_request_completed",
                "trace_id": trace_id,
                "path": request.url.path,
                "status": response.status_code,
                "duration": round(time.perf_counter() - start_time, 4),
            },
        )
        return response

    @app.exception_handler(PokedexError)
    async def handle_pokedex_error(request: Request, exc: PokedexError):  # type: ignore[override]
        trace_id = getattr(request.state, "trace_id", None) or generate_trace_id()
        metrics.increment("pokedex_api_failures_total")
        LOGGER.warning(
            "api_request_failed",
            extra={"event": "api_request_failed", "trace_id": trace_id, "error": exc.to_payload()},
        )
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": exc.to_payload(trace_id=trace_id)},
        )

    @app.get("/health", tags=["system"])
    async def healthcheck() -> Dict[str, Any]:
        return health_snapshot(
            catalog={"base_url": client.config.base_url, "max_id": client.max_id},
        )

    assert PlainTextResponse is not None  # for mypy

    @app.get("/metrics", tags=["system"], response_class=PlainTextResponse)
    async def metrics_endpoint() -> "PlainTextResponse":
        return PlainTextResponse(render_metrics(), media_type="text/plain; version=0.0.4")

    @app.get("/pokemon/{identifier}", tags=["lookup"])
    async def get_pokemon(identifier: str) -> Dict[str, Any]:
        creature = await client.fetch_creature(identifier)
        return {**creature.to_dict(), "generation": generation_for(creature.id)}

    @app.get("/pokemon/{identifier}/evolution", tags=["lookup"])
    async def get_evolution(identifier: str) -> Dict[str, Any]:
        creature = await client.fetch_creature(identifier)
        stages = await resolve_for_creature(creature, client)
        return {
            "pokemon": creature.name,
            "id": creature.id,
            "stages": [stage.to_dict() for stage in stages],
        }

    @app.get("/pokemon/{identifier}/moves", tags=["lookup"])
    async def get_moves(
        identifier: str,
        method: str = ALL_METHODS,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        creature = await client.fetch_creature(identifier)
        catalog = catalog_for_creature(creature, method)
        return {"pokemon": creature.name, **catalog.to_dict(offset=offset, limit=limit)}

    @app.get("/pokemon/{identifier}/description", tags=["lookup"])
    async def get_description(identifier: str, version: Optional[str] = None) -> Dict[str, Any]:
        creature = await client.fetch_creature(identifier)
        species = await client.fetch_species(creature.species.name if creature.species else creature.id)
        text = flavor_text(species, version)
        return {
            "pokemon": creature.name,
            "flavor_text": text,
            "versions": available_versions(species),
            "speech_text": speech_text(creature, text) if text else "",
            "generation": generation_for(creature.id),
        }

    @app.get("/pokemon/{creature_id}/next", tags=["navigation"])
    async def get_next(creature_id: int) -> Dict[str, int]:
        return {"id": client.next_id(creature_id)}

    @app.get("/pokemon/{creature_id}/previous", tags=["navigation"])
    async def get_previous(creature_id: int) -> Dict[str, int]:
        return {"id": client.previous_id(creature_id)}

    @app.get("/random", tags=["lookup"])
    async def get_random() -> Dict[str, Any]:
        creature = await client.fetch_random_creature()
        return {**creature.to_dict(), "generation": generation_for(creature.id)}

    @app.get("/type/{type_name}", tags=["lookup"])
    async def get_type(type_name: str) -> Dict[str, Any]:
        roster = await client.fetch_by_type(type_name)
        return roster.to_dict()

    @app.get("/type/{type_name}/random", tags=["lookup"])
    async def get_random_of_type(type_name: str) -> Dict[str, Any]:
        creature = await client.fetch_random_of_type(type_name)
        return {**creature.to_dict(), "generation": generation_for(creature.id)}

    return app


try:  # pragma: no cover - optional when module imported for app discovery
    app = create_app()
except DependencyError:  # FastAPI missing
    app = None  # type: ignore


__all__ = ["create_app", "app"]
