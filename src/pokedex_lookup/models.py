"""Typed views over PokeAPI documents and the view-models derived from them."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .observability import get_logger

__all__ = [
    "MAX_CHAIN_DEPTH",
    "MalformedChainError",
    "SpeciesRef",
    "Creature",
    "FlavorText",
    "Species",
    "TypeRoster",
    "EvolutionDetail",
    "EvolutionNode",
    "Requirement",
    "EvolutionStage",
    "MoveLearnRecord",
    "MoveEntry",
]

# Real chains are at most three stages deep; anything past this is malformed.
MAX_CHAIN_DEPTH = 16

LOGGER = get_logger(__name__)


class MalformedChainError(ValueError):
    """The chain as a whole is unusable: it loops or nests too deeply."""


def _name_of(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        name = value.get("name")
        return str(name) if name is not None else None
    return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    return int(value)


@dataclass(frozen=True)
class SpeciesRef:
    """A ``{name, url}`` pointer embedded in catalog documents."""

    name: str
    url: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SpeciesRef":
        try:
            return cls(name=str(payload["name"]), url=str(payload["url"]))
        except (KeyError, TypeError) as exc:
            raise ValueError("Reference requires 'name' and 'url'") from exc

    @property
    def resource_id(self) -> int:
        """Numeric id taken from the last path segment of ``url``."""

        segments = [part for part in self.url.split("/") if part]
        if not segments:
            raise ValueError(f"Reference URL has no path: {self.url!r}")
        try:
            return int(segments[-1])
        except ValueError as exc:
            raise ValueError(f"Reference URL does not end in an id: {self.url!r}") from exc


@dataclass(frozen=True)
class Creature:
    """The subset of a ``/pokemon/{id}`` document used by the lookup tool."""

    id: int
    name: str
    order: int = 0
    height: int = 0
    weight: int = 0
    base_experience: Optional[int] = None
    types: Tuple[str, ...] = ()
    abilities: Tuple[str, ...] = ()
    stats: Tuple[Tuple[str, int], ...] = ()
    artwork_url: str = ""
    sprite_url: str = ""
    species: Optional[SpeciesRef] = None
    moves: Tuple[Mapping[str, Any], ...] = field(default=(), repr=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Creature":
        if not isinstance(payload, Mapping):
            raise ValueError("Creature document must be an object")
        try:
            creature_id = int(payload["id"])
            name = str(payload["name"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("Creature document requires 'id' and 'name'") from exc

        sprites = payload.get("sprites") or {}
        other = sprites.get("other") or {}
        artwork = (other.get("official-artwork") or {}).get("front_default")
        species_raw = payload.get("species")

        types = [
            _name_of(entry.get("type"))
            for entry in sorted(payload.get("types") or [], key=lambda e: e.get("slot", 0))
        ]
        abilities = [_name_of(entry.get("ability")) for entry in payload.get("abilities") or []]
        stats = [
            (_name_of(entry.get("stat")) or "", int(entry.get("base_stat", 0)))
            for entry in payload.get("stats") or []
        ]

        return cls(
            id=creature_id,
            name=name,
            order=int(payload.get("order") or 0),
            height=int(payload.get("height") or 0),
            weight=int(payload.get("weight") or 0),
            base_experience=_optional_int(payload.get("base_experience")),
            types=tuple(t for t in types if t),
            abilities=tuple(a for a in abilities if a),
            stats=tuple(stats),
            artwork_url=artwork or "",
            sprite_url=sprites.get("front_default") or "",
            species=SpeciesRef.from_payload(species_raw) if species_raw else None,
            moves=tuple(payload.get("moves") or ()),
        )

    @property
    def display_artwork(self) -> str:
        """Official artwork, falling back to the default sprite, else empty."""

        return self.artwork_url or self.sprite_url or ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "height": self.height,
            "weight": self.weight,
            "base_experience": self.base_experience,
            "types": list(self.types),
            "abilities": list(self.abilities),
            "stats": {name: value for name, value in self.stats},
            "artwork_url": self.display_artwork,
            "species": self.species.name if self.species else None,
        }


@dataclass(frozen=True)
class FlavorText:
    text: str
    language: str
    version: str


@dataclass(frozen=True)
class Species:
    """A ``/pokemon-species/{id}`` document."""

    name: str
    flavor_text_entries: Tuple[FlavorText, ...] = ()
    evolution_chain_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Species":
        if not isinstance(payload, Mapping):
            raise ValueError("Species document must be an object")
        entries = tuple(
            FlavorText(
                text=str(entry.get("flavor_text", "")),
                language=_name_of(entry.get("language")) or "",
                version=_name_of(entry.get("version")) or "",
            )
            for entry in payload.get("flavor_text_entries") or []
        )
        chain = payload.get("evolution_chain") or {}
        return cls(
            name=str(payload.get("name", "")),
            flavor_text_entries=entries,
            evolution_chain_url=chain.get("url") if isinstance(chain, Mapping) else None,
        )


@dataclass(frozen=True)
class TypeRoster:
    """Creatures listed under a ``/type/{name}`` document."""

    type_name: str
    members: Tuple[SpeciesRef, ...]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, type_name: str) -> "TypeRoster":
        if not isinstance(payload, Mapping):
            raise ValueError("Type document must be an object")
        members = tuple(
            SpeciesRef.from_payload(entry["pokemon"])
            for entry in payload.get("pokemon") or []
            if isinstance(entry, Mapping) and entry.get("pokemon")
        )
        return cls(type_name=str(payload.get("name") or type_name), members=members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type_name,
            "members": [{"name": ref.name, "url": ref.url} for ref in self.members],
        }


@dataclass(frozen=True)
class EvolutionDetail:
    """One ``evolution_details`` record of a chain link."""

    trigger_name: str = ""
    min_level: Optional[int] = None
    min_happiness: Optional[int] = None
    min_beauty: Optional[int] = None
    min_affection: Optional[int] = None
    time_of_day: str = ""
    item_name: Optional[str] = None
    trade_species_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EvolutionDetail":
        return cls(
            trigger_name=_name_of(payload.get("trigger")) or "",
            min_level=_optional_int(payload.get("min_level")),
            min_happiness=_optional_int(payload.get("min_happiness")),
            min_beauty=_optional_int(payload.get("min_beauty")),
            min_affection=_optional_int(payload.get("min_affection")),
            time_of_day=str(payload.get("time_of_day") or ""),
            item_name=_name_of(payload.get("item")),
            trade_species_name=_name_of(payload.get("trade_species")),
        )


@dataclass(frozen=True)
class EvolutionNode:
    """A link of an evolution chain: species, how it is reached, what follows."""

    species: SpeciesRef
    details: Tuple[EvolutionDetail, ...] = ()
    children: Tuple["EvolutionNode", ...] = ()
    is_baby: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EvolutionNode":
        """Parse a chain link, or a ``{"chain": link}`` wrapper, recursively.

        A child link that cannot be parsed is dropped with its subtree and
        logged; the root must parse. Cyclic mappings and chains deeper than
        :data:`MAX_CHAIN_DEPTH` raise :class:`MalformedChainError`.
        """

        if isinstance(payload, Mapping) and "chain" in payload and "species" not in payload:
            payload = payload["chain"]
        return cls._parse(payload, depth=0, ancestors=set())

    @classmethod
    def _parse(cls, payload: Any, *, depth: int, ancestors: set[int]) -> "EvolutionNode":
        if not isinstance(payload, Mapping):
            raise ValueError("Evolution chain link must be an object")
        if depth > MAX_CHAIN_DEPTH:
            raise MalformedChainError(f"Evolution chain deeper than {MAX_CHAIN_DEPTH} links")
        marker = id(payload)
        if marker in ancestors:
            raise MalformedChainError("Evolution chain contains a cycle")
        ancestors.add(marker)
        try:
            species = SpeciesRef.from_payload(payload.get("species") or {})
            details = tuple(
                EvolutionDetail.from_payload(entry)
                for entry in payload.get("evolution_details") or []
                if isinstance(entry, Mapping)
            )
            children = []
            for child in payload.get("evolves_to") or []:
                try:
                    children.append(cls._parse(child, depth=depth + 1, ancestors=ancestors))
                except MalformedChainError:
                    raise
                except (ValueError, TypeError) as exc:
                    LOGGER.warning(
                        "evolution_link_dropped",
                        extra={"event": "evolution_link_dropped", "parent": species.name, "reason": str(exc)},
                    )
        finally:
            ancestors.discard(marker)
        return cls(
            species=species,
            details=details,
            children=tuple(children),
            is_baby=bool(payload.get("is_baby", False)),
        )

    def count(self) -> int:
        """Total number of links in this subtree."""

        return 1 + sum(child.count() for child in self.children)


@dataclass(frozen=True)
class Requirement:
    """What it takes to reach an evolution stage."""

    kind: str
    level: Optional[int] = None
    value: Optional[int] = None
    item_name: str = ""
    trigger_name: str = ""

    LEVEL = "level"
    HAPPINESS = "happiness"
    TRADE = "trade"
    ITEM = "item"
    LEVEL_UP = "levelUp"
    OTHER = "other"

    @property
    def label(self) -> str:
        if self.kind == self.LEVEL:
            return f"Lv. {self.level}"
        if self.kind == self.HAPPINESS:
            return f"Happiness {self.value}"
        if self.kind == self.TRADE:
            return "Trade"
        if self.kind == self.ITEM:
            return self.item_name or "Item"
        if self.kind == self.LEVEL_UP:
            return "Level Up"
        return self.trigger_name

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind}
        if self.kind == self.LEVEL:
            payload["level"] = self.level
        elif self.kind == self.HAPPINESS:
            payload["value"] = self.value
        elif self.kind == self.ITEM:
            payload["itemName"] = self.item_name
        elif self.kind == self.OTHER:
            payload["triggerName"] = self.trigger_name
        return payload


@dataclass(frozen=True)
class EvolutionStage:
    species_name: str
    creature_id: int
    artwork_url: str
    requirement: Optional[Requirement] = None

    @property
    def requirement_label(self) -> str:
        return self.requirement.label if self.requirement else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "species": self.species_name,
            "id": self.creature_id,
            "artwork_url": self.artwork_url,
            "requirement": self.requirement.to_dict() if self.requirement else None,
            "requirement_label": self.requirement_label,
        }


@dataclass(frozen=True)
class MoveLearnRecord:
    """One way a creature learns a move in one version group."""

    move_name: str
    level_learned_at: int
    learn_method: str
    version_group: str = ""


@dataclass(frozen=True)
class MoveEntry:
    move_name: str
    level: int
    method: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.move_name, "level": self.level, "method": self.method}
