"""Command line interface for Pokédex lookups."""
from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

from . import description
from .catalog import CatalogClient
from .config import CatalogConfig, build_catalog_config
from .errors import PokedexError
from .evolution import resolve_for_creature
from .models import Creature
from .moves import ALL_METHODS, PREVIEW_LIMIT, catalog_for_creature
from .observability import configure_logging, generate_trace_id, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pokedex-lookup",
        description="Look up Pokémon, their evolution chains and their moves",
    )
    parser.add_argument("--output", choices=["text", "json"], default="text")
    parser.add_argument("--base-url", dest="base_url", help="Catalog base URL")
    parser.add_argument("--max-id", dest="max_id", type=int, help="Highest national dex id")
    parser.add_argument("--timeout", type=float, help="HTTP timeout in seconds")
    parser.add_argument("--log-level", dest="log_level", help="Logging level, e.g. DEBUG")

    subparsers = parser.add_subparsers(dest="command", required=True)

    show_parser = subparsers.add_parser("show", help="Show a Pokémon by name or id")
    show_parser.add_argument("identifier")

    evolution_parser = subparsers.add_parser("evolution", help="Show the evolution chain")
    evolution_parser.add_argument("identifier")

    moves_parser = subparsers.add_parser("moves", help="List the moves a Pokémon learns")
    moves_parser.add_argument("identifier")
    moves_parser.add_argument("--method", default=ALL_METHODS, help="Learn method, e.g. level-up")
    moves_parser.add_argument("--all", action="store_true", dest="show_all", help="List every move")
    moves_parser.add_argument("--offset", type=int, default=0)
    moves_parser.add_argument("--limit", type=int)

    describe_parser = subparsers.add_parser("describe", help="Show the Pokédex entry text")
    describe_parser.add_argument("identifier")
    describe_parser.add_argument("--version", dest="game_version", help="Game version, e.g. red")

    subparsers.add_parser("random", help="Show a random Pokémon")

    type_parser = subparsers.add_parser("type", help="List Pokémon of a type")
    type_parser.add_argument("type_name")
    type_parser.add_argument(
        "--random",
        action="store_true",
        dest="random_member",
        help="Show a random Pokémon among the first 20 of the type",
    )

    next_parser = subparsers.add_parser("next", help="Id after the given one")
    next_parser.add_argument("creature_id", type=int)

    previous_parser = subparsers.add_parser("previous", help="Id before the given one")
    previous_parser.add_argument("creature_id", type=int)

    return parser


def _creature_result(creature: Creature) -> Dict[str, Any]:
    return {**creature.to_dict(), "generation": description.generation_for(creature.id)}


async def run_command(args: argparse.Namespace, catalog: CatalogClient) -> Dict[str, Any]:
    """Execute ``args.command`` against ``catalog`` and return a JSON-ready result."""

    if args.command == "next":
        return {"id": catalog.next_id(args.creature_id)}
    if args.command == "previous":
        return {"id": catalog.previous_id(args.creature_id)}
    if args.command == "random":
        return _creature_result(await catalog.fetch_random_creature())
    if args.command == "type":
        if args.random_member:
            return _creature_result(await catalog.fetch_random_of_type(args.type_name))
        roster = await catalog.fetch_by_type(args.type_name)
        return roster.to_dict()

    creature = await catalog.fetch_creature(args.identifier)
    if args.command == "show":
        return _creature_result(creature)
    if args.command == "evolution":
        stages = await resolve_for_creature(creature, catalog)
        return {
            "pokemon": creature.name,
            "id": creature.id,
            "stages": [stage.to_dict() for stage in stages],
        }
    if args.command == "moves":
        moves = catalog_for_creature(creature, args.method)
        limit = args.limit
        if limit is None and not args.show_all:
            limit = PREVIEW_LIMIT
        return {"pokemon": creature.name, **moves.to_dict(offset=args.offset, limit=limit)}
    if args.command == "describe":
        species = await catalog.fetch_species(creature.species.name if creature.species else creature.id)
        text = description.flavor_text(species, args.game_version)
        return {
            "pokemon": creature.name,
            "flavor_text": text,
            "versions": description.available_versions(species),
            "speech_text": description.speech_text(creature, text) if text else "",
            "generation": description.generation_for(creature.id),
        }
    raise ValueError(f"Unknown command {args.command!r}")


def _render_creature(result: Dict[str, Any]) -> List[str]:
    types = ", ".join(result["types"]) or "unknown"
    lines = [
        f"#{result['id']:03d} {description.format_name(result['name'])} [{types}]",
        f"Generation {result['generation']} - height {result['height']} - weight {result['weight']}",
    ]
    for stat, value in result["stats"].items():
        lines.append(f"  {description.format_stat_name(stat)}: {value}")
    return lines


def render_text(command: str, result: Dict[str, Any]) -> str:
    if command in {"show", "random"}:
        lines = _render_creature(result)
    elif command == "evolution":
        stages = result["stages"]
        if len(stages) <= 1:
            lines = ["This Pokémon does not evolve"]
        else:
            lines = [f"Evolution chain ({len(stages)} forms)"]
            for index, stage in enumerate(stages):
                if index > 0:
                    lines.append(f"  -> {stage['requirement_label']} ->")
                marker = " (current)" if stage["id"] == result["id"] else ""
                lines.append(f"#{stage['id']:03d} {description.format_name(stage['species'])}{marker}")
    elif command == "moves":
        lines = [
            f"{result['total']} moves - filter: {result['method']}",
            "Methods: " + (", ".join(result["methods"]) or "none"),
        ]
        for move in result["moves"]:
            level = f"Lv.{move['level']} " if move["level"] > 0 else ""
            lines.append(f"  {level}{description.format_name(move['name'])} ({move['method'].upper()})")
        shown = len(result["moves"])
        if result["offset"] + shown < result["total"]:
            lines.append(f"  ... {result['total'] - result['offset'] - shown} more (use --all)")
    elif command == "describe":
        lines = [result["flavor_text"] or "No description available"]
    elif command == "type":
        members = result["members"]
        lines = [f"{len(members)} Pokémon of type {result['type']}"]
        lines.extend(f"  {description.format_name(member['name'])}" for member in members)
    else:
        lines = [str(result["id"])]
    return "\n".join(lines)


async def _execute(
    args: argparse.Namespace,
    config: CatalogConfig,
    catalog: Optional[CatalogClient],
) -> Dict[str, Any]:
    if catalog is not None:
        return await run_command(args, catalog)
    async with CatalogClient(config) as owned:
        return await run_command(args, owned)


def main(argv: Sequence[str] | None = None, *, catalog: Optional[CatalogClient] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = build_catalog_config(args)
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(config.log_level)
    logger = get_logger(__name__)
    trace_id = generate_trace_id()

    try:
        result = asyncio.run(_execute(args, config, catalog))
    except PokedexError as exc:
        logger.error(
            "cli_command_failed",
            extra={"event": "cli_command_failed", "trace_id": trace_id, "error": exc.to_payload()},
        )
        parser.error(f"{exc.message} (trace: {trace_id})")

    if args.output == "json":
        print(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        view = "show" if getattr(args, "random_member", False) else args.command
        print(render_text(view, result))
    logger.info(
        "cli_command_completed",
        extra={"event": "cli_command_completed", "trace_id": trace_id, "command": args.command},
    )


if __name__ == "__main__":  # pragma: no cover
    main()
