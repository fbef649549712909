"""Tests for evolution chain resolution."""

from __future__ import annotations

import asyncio

import pytest

from payloads import FakeCatalog, creature_payload, detail_payload, link_payload
from pokedex_lookup.evolution import requirement_for, resolve, resolve_for_creature, select_stage
from pokedex_lookup.models import (
    MAX_CHAIN_DEPTH,
    Creature,
    EvolutionDetail,
    EvolutionNode,
    MalformedChainError,
    Requirement,
    SpeciesRef,
)
from pokedex_lookup.observability import metrics_snapshot


def _bulbasaur_line():
    return link_payload(
        "bulbasaur",
        1,
        children=[
            link_payload(
                "ivysaur",
                2,
                details=[detail_payload("level-up", min_level=16)],
                children=[
                    link_payload("venusaur", 3, details=[detail_payload("level-up", min_level=32)]),
                ],
            )
        ],
    )


def _eevee_tree():
    return link_payload(
        "eevee",
        133,
        children=[
            link_payload("vaporeon", 134, details=[detail_payload("use-item", item="water-stone")]),
            link_payload("jolteon", 135, details=[detail_payload("use-item", item="thunder-stone")]),
            link_payload("flareon", 136, details=[detail_payload("use-item", item="fire-stone")]),
        ],
    )


def _catalog(*entries, **kwargs):
    return FakeCatalog({cid: creature_payload(cid, name) for cid, name in entries}, **kwargs)


def test_linear_chain_resolves_in_root_to_leaf_order():
    catalog = _catalog((1, "bulbasaur"), (2, "ivysaur"), (3, "venusaur"))

    stages = asyncio.run(resolve(_bulbasaur_line(), catalog))

    assert [stage.species_name for stage in stages] == ["bulbasaur", "ivysaur", "venusaur"]
    assert [stage.creature_id for stage in stages] == [1, 2, 3]
    assert catalog.calls == [1, 2, 3]
    assert stages[0].requirement is None
    assert stages[1].requirement == Requirement(Requirement.LEVEL, level=16)
    assert stages[2].requirement_label == "Lv. 32"
    assert stages[0].artwork_url == "https://img.example/artwork/1.png"


def test_failed_second_node_prunes_its_descendants():
    catalog = _catalog((1, "bulbasaur"), (2, "ivysaur"), (3, "venusaur"), failing=[2])
    before = metrics_snapshot()["counters"].get("pokedex_evolution_nodes_pruned_total", 0.0)

    stages = asyncio.run(resolve(_bulbasaur_line(), catalog))

    assert [stage.species_name for stage in stages] == ["bulbasaur"]
    assert catalog.calls == [1, 2]
    after = metrics_snapshot()["counters"]["pokedex_evolution_nodes_pruned_total"]
    assert after == before + 1


def test_branching_tree_is_flattened_in_pre_order():
    catalog = _catalog((133, "eevee"), (134, "vaporeon"), (135, "jolteon"), (136, "flareon"))

    stages = asyncio.run(resolve(_eevee_tree(), catalog))

    assert [stage.species_name for stage in stages] == ["eevee", "vaporeon", "jolteon", "flareon"]
    for stage in stages[1:]:
        assert stage.requirement is not None
        assert stage.requirement.kind == Requirement.ITEM
    assert [stage.requirement_label for stage in stages[1:]] == ["water-stone", "thunder-stone", "fire-stone"]


def test_failed_sibling_keeps_the_rest_of_the_branch():
    catalog = _catalog((133, "eevee"), (134, "vaporeon"), (135, "jolteon"), (136, "flareon"), failing=[135])

    stages = asyncio.run(resolve(_eevee_tree(), catalog))

    assert [stage.species_name for stage in stages] == ["eevee", "vaporeon", "flareon"]


def test_failed_root_yields_empty_result():
    catalog = _catalog((2, "ivysaur"), failing=[1])

    stages = asyncio.run(resolve(_bulbasaur_line(), catalog))

    assert stages == ()
    assert catalog.calls == [1]


def test_creature_id_comes_from_fetched_record():
    catalog = FakeCatalog({7: creature_payload(10007, "squirtle-form")})

    stages = asyncio.run(resolve(link_payload("squirtle", 7), catalog))

    assert stages[0].creature_id == 10007
    assert stages[0].species_name == "squirtle"


def test_non_root_without_details_has_no_requirement():
    tree = link_payload("a", 1, children=[link_payload("b", 2)])
    stages = asyncio.run(resolve(tree, _catalog((1, "a"), (2, "b"))))

    assert len(stages) == 2
    assert stages[1].requirement is None
    assert stages[1].requirement_label == ""


def test_wrapped_chain_document_is_accepted():
    stages = asyncio.run(resolve({"id": 1, "chain": _bulbasaur_line()}, _catalog((1, "bulbasaur"), (2, "ivysaur"), (3, "venusaur"))))
    assert len(stages) == 3


def test_fetches_are_strictly_sequential():
    class SlowCatalog(FakeCatalog):
        in_flight = 0
        peak = 0

        async def fetch_creature(self, name_or_id):
            SlowCatalog.in_flight += 1
            SlowCatalog.peak = max(SlowCatalog.peak, SlowCatalog.in_flight)
            try:
                await asyncio.sleep(0)
                return await super().fetch_creature(name_or_id)
            finally:
                SlowCatalog.in_flight -= 1

    catalog = SlowCatalog({cid: creature_payload(cid, name) for cid, name in [(133, "eevee"), (134, "v"), (135, "j"), (136, "f")]})

    asyncio.run(resolve(_eevee_tree(), catalog))

    assert SlowCatalog.peak == 1
    assert catalog.calls == [133, 134, 135, 136]


def test_cyclic_document_is_rejected_without_fetching():
    root = link_payload("loop", 1)
    root["evolves_to"].append(root)
    catalog = _catalog((1, "loop"))

    stages = asyncio.run(resolve(root, catalog))

    assert stages == ()
    assert catalog.calls == []


def test_shared_node_is_resolved_once():
    shared = EvolutionNode(species=SpeciesRef("b", "https://pokeapi.co/api/v2/pokemon-species/2/"))
    root = EvolutionNode(
        species=SpeciesRef("a", "https://pokeapi.co/api/v2/pokemon-species/1/"),
        children=(shared, shared),
    )

    stages = asyncio.run(resolve(root, _catalog((1, "a"), (2, "b"))))

    assert [stage.species_name for stage in stages] == ["a", "b"]


def test_overly_deep_chain_is_cut_at_depth_cap():
    node = None
    total = MAX_CHAIN_DEPTH + 4
    for species_id in range(total, 0, -1):
        node = EvolutionNode(
            species=SpeciesRef(f"s{species_id}", f"https://pokeapi.co/api/v2/pokemon-species/{species_id}/"),
            children=(node,) if node else (),
        )
    catalog = _catalog(*[(i, f"s{i}") for i in range(1, total + 1)])

    stages = asyncio.run(resolve(node, catalog))

    assert len(stages) == MAX_CHAIN_DEPTH + 1


def test_unparseable_species_url_prunes_the_node():
    tree = link_payload("a", 1, children=[{"species": {"name": "b", "url": "https://pokeapi.co/x/"}, "evolves_to": []}])

    stages = asyncio.run(resolve(tree, _catalog((1, "a"))))

    assert [stage.species_name for stage in stages] == ["a"]


@pytest.mark.parametrize(
    "detail, expected",
    [
        (EvolutionDetail("level-up", min_level=16), Requirement(Requirement.LEVEL, level=16)),
        (EvolutionDetail("level-up", min_happiness=220), Requirement(Requirement.HAPPINESS, value=220)),
        (EvolutionDetail("trade"), Requirement(Requirement.TRADE)),
        (EvolutionDetail("use-item", item_name="moon-stone"), Requirement(Requirement.ITEM, item_name="moon-stone")),
        (EvolutionDetail("use-item"), Requirement(Requirement.ITEM)),
        (EvolutionDetail("level-up", time_of_day="night"), Requirement(Requirement.LEVEL_UP)),
        (EvolutionDetail("shed"), Requirement(Requirement.OTHER, trigger_name="shed")),
    ],
)
def test_requirement_uses_first_detail(detail, expected):
    second = EvolutionDetail("trade")
    assert requirement_for([detail, second]) == expected


def test_requirement_labels():
    assert Requirement(Requirement.HAPPINESS, value=220).label == "Happiness 220"
    assert Requirement(Requirement.TRADE).label == "Trade"
    assert Requirement(Requirement.ITEM).label == "Item"
    assert Requirement(Requirement.LEVEL_UP).label == "Level Up"
    assert Requirement(Requirement.OTHER, trigger_name="spin").label == "spin"
    assert requirement_for([]) is None


def test_resolve_for_creature_walks_species_and_chain():
    chain_url = "https://pokeapi.co/api/v2/evolution-chain/1/"
    catalog = FakeCatalog(
        {cid: creature_payload(cid, name) for cid, name in [(1, "bulbasaur"), (2, "ivysaur"), (3, "venusaur")]},
        species={"ivysaur": {"name": "ivysaur", "evolution_chain": {"url": chain_url}}},
        chains={chain_url: {"chain": _bulbasaur_line()}},
    )
    creature = Creature.from_payload(creature_payload(2, "ivysaur"))

    stages = asyncio.run(resolve_for_creature(creature, catalog))

    assert [stage.creature_id for stage in stages] == [1, 2, 3]


def test_resolve_for_creature_without_chain_is_empty():
    catalog = FakeCatalog({}, species={"ditto": {"name": "ditto"}})
    creature = Creature.from_payload(creature_payload(132, "ditto"))

    assert asyncio.run(resolve_for_creature(creature, catalog)) == ()


def test_select_stage_refetches_by_id():
    catalog = _catalog((1, "bulbasaur"), (2, "ivysaur"), (3, "venusaur"))
    stages = asyncio.run(resolve(_bulbasaur_line(), catalog))

    selected = asyncio.run(select_stage(stages[2], catalog))

    assert selected.name == "venusaur"
    assert catalog.calls[-1] == 3


def test_unexpected_catalog_exception_prunes_only_that_link():
    class BrokenRecordCatalog(FakeCatalog):
        async def fetch_creature(self, name_or_id):
            if name_or_id == 2:
                self.calls.append(name_or_id)
                raise KeyError("sprites")
            return await super().fetch_creature(name_or_id)

    catalog = BrokenRecordCatalog({1: creature_payload(1, "a"), 3: creature_payload(3, "c")})
    tree = link_payload("a", 1, children=[link_payload("b", 2), link_payload("c", 3)])

    stages = asyncio.run(resolve(tree, catalog))

    assert [stage.species_name for stage in stages] == ["a", "c"]
    assert catalog.calls == [1, 2, 3]


def test_malformed_child_link_is_dropped_with_its_subtree():
    broken = {"evolution_details": [], "evolves_to": [link_payload("d", 4)]}
    tree = link_payload("a", 1, children=[broken, link_payload("c", 3)])
    catalog = _catalog((1, "a"), (3, "c"), (4, "d"))

    stages = asyncio.run(resolve(tree, catalog))

    assert [stage.species_name for stage in stages] == ["a", "c"]
    assert catalog.calls == [1, 3]


def test_root_without_species_rejects_the_document():
    catalog = _catalog((3, "c"))

    stages = asyncio.run(resolve({"evolves_to": [link_payload("c", 3)]}, catalog))

    assert stages == ()
    assert catalog.calls == []


def test_parsed_chain_keeps_healthy_siblings():
    node = EvolutionNode.from_payload(
        link_payload("a", 1, children=[{"species": None}, "junk", link_payload("c", 3)])
    )

    assert [child.species.name for child in node.children] == ["c"]


def test_cycle_below_the_root_still_rejects_the_whole_chain():
    child = link_payload("b", 2)
    child["evolves_to"].append(child)

    with pytest.raises(MalformedChainError):
        EvolutionNode.from_payload(link_payload("a", 1, children=[child]))
