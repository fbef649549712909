"""Pokédex lookup: catalog access, evolution chains and move catalogs."""

from . import (
    catalog,
    config,
    description,
    errors,
    evolution,
    models,
    moves,
    observability,
)
from .catalog import CatalogClient, next_id, previous_id
from .errors import NetworkError, NotFoundError, PokedexError
from .evolution import resolve, resolve_for_creature, select_stage
from .moves import MoveCatalog, aggregate, catalog_for_creature

__all__ = [
    "catalog",
    "config",
    "description",
    "errors",
    "evolution",
    "models",
    "moves",
    "observability",
    "CatalogClient",
    "MoveCatalog",
    "NetworkError",
    "NotFoundError",
    "PokedexError",
    "aggregate",
    "catalog_for_creature",
    "next_id",
    "previous_id",
    "resolve",
    "resolve_for_creature",
    "select_stage",
]
