"""Collapse multi-version move-learn data into one entry per move."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import InputValidationError
from .models import Creature, MoveEntry, MoveLearnRecord

__all__ = [
    "ALL_METHODS",
    "PREVIEW_LIMIT",
    "MoveCatalog",
    "aggregate",
    "candidate_records",
    "catalog_for_creature",
    "learn_methods",
    "records_from_creature",
]

ALL_METHODS = "all"
PREVIEW_LIMIT = 6


@dataclass(frozen=True)
class MoveCatalog:
    """Deduplicated moves of one creature, filtered and sorted by level."""

    entries: Tuple[MoveEntry, ...]
    methods: Tuple[str, ...]
    method_filter: str = ALL_METHODS

    @property
    def total(self) -> int:
        return len(self.entries)

    def page(self, offset: int = 0, limit: Optional[int] = None) -> Tuple[MoveEntry, ...]:
        if offset < 0:
            raise InputValidationError("offset must not be negative.", context={"offset": offset})
        if limit is not None and limit < 0:
            raise InputValidationError("limit must not be negative.", context={"limit": limit})
        end = None if limit is None else offset + limit
        return self.entries[offset:end]

    def preview(self, limit: int = PREVIEW_LIMIT) -> Tuple[MoveEntry, ...]:
        """The collapsed view: the first ``limit`` moves."""

        return self.page(0, limit)

    def to_dict(self, *, offset: int = 0, limit: Optional[int] = None) -> Dict[str, Any]:
        return {
            "method": self.method_filter,
            "methods": list(self.methods),
            "total": self.total,
            "offset": offset,
            "limit": limit,
            "moves": [entry.to_dict() for entry in self.page(offset, limit)],
        }


def learn_methods(records: Iterable[MoveLearnRecord]) -> Tuple[str, ...]:
    """Distinct learn methods in first-seen order."""

    seen: Dict[str, None] = {}
    for record in records:
        seen.setdefault(record.learn_method, None)
    return tuple(seen)


def aggregate(
    records: Sequence[MoveLearnRecord],
    method_filter: str = ALL_METHODS,
    *,
    methods: Optional[Sequence[str]] = None,
) -> MoveCatalog:
    """Build a :class:`MoveCatalog` from raw learn records.

    Records are scanned in input order. The first record of a move seeds its
    entry, and a later record replaces it only when its level is strictly
    lower. The result therefore depends on input order when per-version levels
    disagree.

    ``methods`` overrides the method list offered for filtering; by default it
    is every method seen in ``records``.
    """

    chosen: Dict[str, MoveEntry] = {}
    for record in records:
        current = chosen.get(record.move_name)
        if current is None or current.level > record.level_learned_at:
            chosen[record.move_name] = MoveEntry(
                move_name=record.move_name,
                level=record.level_learned_at,
                method=record.learn_method,
            )

    entries: List[MoveEntry] = list(chosen.values())
    if method_filter != ALL_METHODS:
        entries = [entry for entry in entries if entry.method == method_filter]
    entries.sort(key=lambda entry: entry.level)

    return MoveCatalog(
        entries=tuple(entries),
        methods=tuple(methods) if methods is not None else learn_methods(records),
        method_filter=method_filter,
    )


def _record(move_name: str, detail: Mapping[str, Any]) -> MoveLearnRecord:
    return MoveLearnRecord(
        move_name=move_name,
        level_learned_at=int(detail.get("level_learned_at") or 0),
        learn_method=str((detail.get("move_learn_method") or {}).get("name", "")),
        version_group=str((detail.get("version_group") or {}).get("name", "")),
    )


def records_from_creature(creature: Creature) -> Tuple[MoveLearnRecord, ...]:
    """Flatten ``moves[].version_group_details[]`` into learn records."""

    records: List[MoveLearnRecord] = []
    for move in creature.moves:
        name = str((move.get("move") or {}).get("name", ""))
        for detail in move.get("version_group_details") or []:
            records.append(_record(name, detail))
    return tuple(records)


def candidate_records(creature: Creature) -> Tuple[MoveLearnRecord, ...]:
    """One candidate per ``moves`` entry: its highest-level version detail."""

    candidates: List[MoveLearnRecord] = []
    for move in creature.moves:
        name = str((move.get("move") or {}).get("name", ""))
        details = sorted(
            move.get("version_group_details") or [],
            key=lambda detail: int(detail.get("level_learned_at") or 0),
            reverse=True,
        )
        if details:
            candidates.append(_record(name, details[0]))
    return tuple(candidates)


def catalog_for_creature(creature: Creature, method_filter: str = ALL_METHODS) -> MoveCatalog:
    """Aggregate a creature's moves the way the lookup screen shows them.

    Each move contributes the candidate from :func:`candidate_records`; the
    filter options still list every method found in any version detail.
    """

    return aggregate(
        candidate_records(creature),
        method_filter,
        methods=learn_methods(records_from_creature(creature)),
    )
