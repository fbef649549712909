"""Pokédex entry text: flavor text selection, speech text and display names."""
from __future__ import annotations

import re
from typing import Callable, List, Optional, Protocol

from .models import Creature, Species

__all__ = [
    "SpeechPlayer",
    "announce",
    "available_versions",
    "flavor_text",
    "format_name",
    "format_stat_name",
    "generation_for",
    "speech_text",
]

_CONTROL_BREAKS = re.compile(r"[\n\f\r]")

# Last national dex number of each generation.
_GENERATION_BOUNDS = (
    (151, "I"),
    (251, "II"),
    (386, "III"),
    (493, "IV"),
    (649, "V"),
    (721, "VI"),
    (809, "VII"),
    (905, "VIII"),
)

_STAT_NAMES = {
    "hp": "HP",
    "attack": "ATK",
    "defense": "DEF",
    "special-attack": "SP.ATK",
    "special-defense": "SP.DEF",
    "speed": "SPEED",
}


class SpeechPlayer(Protocol):
    """Plays text aloud and calls ``on_complete`` when done or failed."""

    def speak(self, text: str, on_complete: Optional[Callable[[], None]] = None) -> None: ...


def format_name(name: str) -> str:
    """``"mr-mime"`` -> ``"Mr mime"``."""

    if not name:
        return ""
    return name[0].upper() + name[1:].replace("-", " ")


def format_stat_name(stat_name: str) -> str:
    return _STAT_NAMES.get(stat_name, stat_name.upper())


def generation_for(creature_id: int) -> str:
    for bound, numeral in _GENERATION_BOUNDS:
        if creature_id <= bound:
            return numeral
    return "IX"


def flavor_text(species: Species, version: Optional[str] = None, language: str = "en") -> str:
    """Return the first entry in ``language`` (optionally for ``version``), cleaned.

    Line and form feeds from the game text are replaced by spaces. Returns an
    empty string when no entry matches.
    """

    for entry in species.flavor_text_entries:
        if entry.language != language:
            continue
        if version and entry.version != version:
            continue
        return _CONTROL_BREAKS.sub(" ", entry.text)
    return ""


def available_versions(species: Species, language: str = "en", limit: int = 5) -> List[str]:
    versions: List[str] = []
    for entry in species.flavor_text_entries:
        if entry.language == language and entry.version not in versions:
            versions.append(entry.version)
    return versions[:limit]


def speech_text(creature: Creature, flavor: str) -> str:
    type_text = " and ".join(creature.types)
    return f"{format_name(creature.name)}, the {type_text} type Pokémon. {flavor}"


def announce(
    player: SpeechPlayer,
    creature: Creature,
    species: Species,
    on_complete: Optional[Callable[[], None]] = None,
) -> Optional[str]:
    """Hand the entry text to ``player``; returns the text, or ``None`` if there is none."""

    flavor = flavor_text(species)
    if not flavor:
        return None
    text = speech_text(creature, flavor)
    player.speak(text, on_complete)
    return text
