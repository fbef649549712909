"""Async accessor for the PokeAPI REST catalog.

One GET per call. Failures become :class:`~pokedex_lookup.errors.NotFoundError`
or :class:`~pokedex_lookup.errors.NetworkError`; documents are parsed into the
typed views from :mod:`pokedex_lookup.models`. Nothing is cached or retried.
"""
from __future__ import annotations

import random
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from .config import DEFAULT_MAX_ID, CatalogConfig
from .errors import InputValidationError, NetworkError, NotFoundError
from .models import Creature, EvolutionNode, Species, TypeRoster
from .observability import get_logger, metrics

__all__ = ["CatalogClient", "next_id", "previous_id"]

LOGGER = get_logger(__name__)

_MALFORMED = (ValueError, TypeError, KeyError, AttributeError)

# The type filter only samples from the head of the roster.
TYPE_SAMPLE_WINDOW = 20


def next_id(current_id: int, max_id: int = DEFAULT_MAX_ID) -> int:
    """Return the id after ``current_id``, wrapping ``max_id`` back to 1."""

    return 1 if current_id >= max_id else current_id + 1


def previous_id(current_id: int, max_id: int = DEFAULT_MAX_ID) -> int:
    """Return the id before ``current_id``, wrapping 1 around to ``max_id``."""

    return max_id if current_id <= 1 else current_id - 1


def _normalise_identifier(name_or_id: str | int) -> str:
    """Return ``name_or_id`` as a single percent-encoded URL path segment."""

    if isinstance(name_or_id, bool):
        raise InputValidationError("Identifier must be a name or a numeric id.")
    if isinstance(name_or_id, int):
        if name_or_id <= 0:
            raise NotFoundError(
                f"No Pokémon with id {name_or_id}.",
                remediation="Use an id of 1 or higher.",
                context={"identifier": name_or_id},
            )
        return str(name_or_id)
    text = str(name_or_id).strip().lower()
    if not text:
        raise InputValidationError(
            "Identifier cannot be empty.",
            remediation="Provide a Pokémon name such as 'pikachu' or an id such as 25.",
        )
    segment = quote(text, safe="")
    if segment in {".", ".."}:
        raise NotFoundError(f"No catalog entry named {text!r}.", context={"identifier": text})
    return segment


class CatalogClient:
    """Fetch creature, species, evolution-chain and type documents.

    Pass ``http_client`` to share a connection pool or to inject an
    ``httpx.MockTransport`` in tests; otherwise the client owns its own
    :class:`httpx.AsyncClient` and closes it in :meth:`aclose`.
    """

    def __init__(
        self,
        config: Optional[CatalogConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        rng: Optional[Callable[[int, int], int]] = None,
    ) -> None:
        self.config = config or CatalogConfig()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.config.timeout)
        self._rng = rng or random.randint

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    @property
    def max_id(self) -> int:
        return self.config.max_id

    def next_id(self, current_id: int) -> int:
        return next_id(current_id, self.max_id)

    def previous_id(self, current_id: int) -> int:
        return previous_id(current_id, self.max_id)

    async def fetch_by_url(self, url: str) -> Dict[str, Any]:
        """GET ``url`` verbatim and return the decoded JSON object."""

        metrics.increment("pokedex_catalog_requests_total")
        try:
            with metrics.timer("pokedex_catalog_fetch_seconds"):
                response = await self._http.get(url)
        except httpx.InvalidURL as exc:
            metrics.increment("pokedex_catalog_failures_total")
            LOGGER.info(
                "catalog_invalid_url",
                extra={"event": "catalog_invalid_url", "url": url[:200], "reason": str(exc)},
            )
            raise NotFoundError(
                "The request does not name a catalog entry.",
                remediation="Use a Pokémon name such as 'pikachu' or an id such as 25.",
                context={"url": url[:200], "reason": str(exc)},
            ) from exc
        except httpx.HTTPError as exc:
            metrics.increment("pokedex_catalog_failures_total")
            LOGGER.warning(
                "catalog_fetch_failed",
                extra={"event": "catalog_fetch_failed", "url": url, "reason": type(exc).__name__},
            )
            raise NetworkError(
                "Could not reach the Pokémon catalog.",
                remediation="Check your connection and try again.",
                context={"url": url, "reason": str(exc) or type(exc).__name__},
            ) from exc

        if response.status_code == 404:
            metrics.increment("pokedex_catalog_failures_total")
            LOGGER.info(
                "catalog_not_found",
                extra={"event": "catalog_not_found", "url": url},
            )
            raise NotFoundError(
                "The catalog has no entry for that request.",
                remediation="Check the spelling of the name or use an id within range.",
                context={"url": url, "status": 404},
            )
        if not response.is_success:
            metrics.increment("pokedex_catalog_failures_total")
            LOGGER.warning(
                "catalog_fetch_failed",
                extra={"event": "catalog_fetch_failed", "url": url, "status": response.status_code},
            )
            error_type = NotFoundError if 400 <= response.status_code < 500 else NetworkError
            raise error_type(
                f"Catalog request failed with status {response.status_code}.",
                context={"url": url, "status": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            metrics.increment("pokedex_catalog_failures_total")
            raise NetworkError(
                "The catalog returned a malformed document.",
                context={"url": url},
            ) from exc
        if not isinstance(payload, dict):
            metrics.increment("pokedex_catalog_failures_total")
            raise NetworkError(
                "The catalog returned an unexpected document shape.",
                context={"url": url},
            )

        LOGGER.debug("catalog_fetch", extra={"event": "catalog_fetch", "url": url})
        return payload

    def _resource_url(self, resource: str, name_or_id: str | int) -> str:
        return f"{self.config.base_url}/{resource}/{_normalise_identifier(name_or_id)}"

    async def fetch_creature(self, name_or_id: str | int) -> Creature:
        url = self._resource_url("pokemon", name_or_id)
        payload = await self.fetch_by_url(url)
        try:
            return Creature.from_payload(payload)
        except _MALFORMED as exc:
            raise NetworkError("Malformed Pokémon document.", context={"url": url}) from exc

    async def fetch_species(self, name_or_id: str | int) -> Species:
        url = self._resource_url("pokemon-species", name_or_id)
        payload = await self.fetch_by_url(url)
        try:
            return Species.from_payload(payload)
        except _MALFORMED as exc:
            raise NetworkError("Malformed species document.", context={"url": url}) from exc

    async def fetch_evolution_chain(self, url: str) -> EvolutionNode:
        """Fetch an evolution-chain document and return its root link."""

        payload = await self.fetch_by_url(url)
        if "chain" not in payload:
            raise NetworkError("Evolution chain document has no 'chain'.", context={"url": url})
        try:
            return EvolutionNode.from_payload(payload)
        except _MALFORMED as exc:
            raise NetworkError("Malformed evolution chain document.", context={"url": url}) from exc

    async def fetch_by_type(self, type_name: str) -> TypeRoster:
        url = self._resource_url("type", type_name)
        payload = await self.fetch_by_url(url)
        try:
            roster = TypeRoster.from_payload(payload, type_name=str(type_name).strip().lower())
        except _MALFORMED as exc:
            raise NetworkError("Malformed type document.", context={"url": url}) from exc
        if not roster.members:
            raise NotFoundError(
                f"No Pokémon found for type '{roster.type_name}'.",
                remediation="Pick one of the standard types such as 'fire' or 'water'.",
                context={"type": roster.type_name},
            )
        return roster

    async def fetch_move(self, name_or_id: str | int) -> Dict[str, Any]:
        return await self.fetch_by_url(self._resource_url("move", name_or_id))

    async def fetch_random_creature(self) -> Creature:
        """Fetch a uniformly random id in ``[1, max_id]``; unassigned ids are not retried."""

        creature_id = self._rng(1, self.max_id)
        LOGGER.info(
            "catalog_random_pick",
            extra={"event": "catalog_random_pick", "creature_id": creature_id},
        )
        return await self.fetch_creature(creature_id)

    async def fetch_random_of_type(self, type_name: str) -> Creature:
        """Fetch a random member among the first :data:`TYPE_SAMPLE_WINDOW` of a type."""

        roster = await self.fetch_by_type(type_name)
        window = min(TYPE_SAMPLE_WINDOW, len(roster.members))
        member = roster.members[self._rng(1, window) - 1]
        LOGGER.info(
            "catalog_type_pick",
            extra={"event": "catalog_type_pick", "type": roster.type_name, "member": member.name},
        )
        return await self.fetch_creature(member.name)
