"""Flatten evolution chains into ordered, enriched stages."""
from __future__ import annotations

from typing import List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from .models import (
    MAX_CHAIN_DEPTH,
    Creature,
    EvolutionDetail,
    EvolutionNode,
    EvolutionStage,
    Requirement,
    Species,
)
from .observability import get_logger, metrics

__all__ = [
    "CreatureSource",
    "requirement_for",
    "resolve",
    "resolve_for_creature",
    "select_stage",
]

LOGGER = get_logger(__name__)


class CreatureSource(Protocol):
    async def fetch_creature(self, name_or_id: str | int) -> Creature: ...


class ChainSource(CreatureSource, Protocol):
    async def fetch_species(self, name_or_id: str | int) -> Species: ...

    async def fetch_evolution_chain(self, url: str) -> EvolutionNode: ...


def requirement_for(details: Sequence[EvolutionDetail]) -> Optional[Requirement]:
    """Derive the requirement of a link from its first evolution detail.

    Alternative paths recorded in later details are ignored.
    """

    if not details:
        return None
    detail = details[0]
    if detail.min_level:
        return Requirement(Requirement.LEVEL, level=detail.min_level)
    if detail.min_happiness:
        return Requirement(Requirement.HAPPINESS, value=detail.min_happiness)
    trigger = detail.trigger_name
    if trigger == "trade":
        return Requirement(Requirement.TRADE)
    if trigger == "use-item":
        return Requirement(Requirement.ITEM, item_name=detail.item_name or "")
    if trigger == "level-up":
        return Requirement(Requirement.LEVEL_UP)
    return Requirement(Requirement.OTHER, trigger_name=trigger)


def _prune(node: EvolutionNode, reason: str, **context: object) -> None:
    metrics.increment("pokedex_evolution_nodes_pruned_total")
    LOGGER.warning(
        "evolution_node_skipped",
        extra={
            "event": "evolution_node_skipped",
            "species": node.species.name,
            "reason": reason,
            **context,
        },
    )


async def _walk(
    node: EvolutionNode,
    catalog: CreatureSource,
    stages: List[EvolutionStage],
    *,
    depth: int,
    seen: Set[int],
) -> None:
    if depth > MAX_CHAIN_DEPTH:
        _prune(node, "max_depth_exceeded", depth=depth)
        return
    if id(node) in seen:
        _prune(node, "cycle_detected")
        return
    seen.add(id(node))

    try:
        creature = await catalog.fetch_creature(node.species.resource_id)
    except Exception as exc:  # any failure costs only this link and its subtree
        _prune(node, type(exc).__name__, url=node.species.url)
        return

    stages.append(
        EvolutionStage(
            species_name=node.species.name,
            creature_id=creature.id,
            artwork_url=creature.display_artwork,
            requirement=requirement_for(node.details),
        )
    )
    for child in node.children:
        await _walk(child, catalog, stages, depth=depth + 1, seen=seen)


async def resolve(
    root: EvolutionNode | Mapping[str, object],
    catalog: CreatureSource,
) -> Tuple[EvolutionStage, ...]:
    """Return the stages of ``root`` in pre-order, one creature fetch per link.

    Links are fetched strictly one after another so the output order matches
    the tree: a link, then each child subtree in array order. A link whose
    fetch fails is logged and skipped together with its descendants; this
    function does not raise for fetch failures and may return an empty tuple.
    Branching is flattened away.
    """

    if not isinstance(root, EvolutionNode):
        try:
            root = EvolutionNode.from_payload(root)
        except (ValueError, TypeError) as exc:
            LOGGER.warning(
                "evolution_chain_rejected",
                extra={"event": "evolution_chain_rejected", "reason": str(exc)},
            )
            return ()

    stages: List[EvolutionStage] = []
    await _walk(root, catalog, stages, depth=0, seen=set())
    LOGGER.info(
        "evolution_chain_resolved",
        extra={
            "event": "evolution_chain_resolved",
            "root": root.species.name,
            "links": root.count(),
            "stages": len(stages),
        },
    )
    return tuple(stages)


async def resolve_for_creature(
    creature: Creature,
    catalog: ChainSource,
) -> Tuple[EvolutionStage, ...]:
    """Look up the chain a creature belongs to and resolve it.

    Species and chain fetch failures propagate; only per-link failures are
    absorbed by :func:`resolve`. Species without a chain yield ``()``.
    """

    species_key = creature.species.name if creature.species else creature.id
    species = await catalog.fetch_species(species_key)
    if not species.evolution_chain_url:
        return ()
    root = await catalog.fetch_evolution_chain(species.evolution_chain_url)
    return await resolve(root, catalog)


async def select_stage(stage: EvolutionStage, catalog: CreatureSource) -> Creature:
    """Re-fetch the creature behind ``stage`` to make it the current selection."""

    return await catalog.fetch_creature(stage.creature_id)
