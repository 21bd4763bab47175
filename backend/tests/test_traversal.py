"""Tests for relationship maps, generational traversal and fan layout."""

import os
import pytest
import sys

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lineage.graph import build_relationship_maps
from lineage.layout import calculate_fan_layout
from lineage.mapper import map_from_gedcom
from lineage.models import (
    ParentRelationship,
    Person,
    SiblingRelationship,
    SpouseRelationship,
    normalize_relationship_row,
)
from lineage.parser import parse
from lineage.traversal import (
    CollectionState,
    collect_ancestors,
    collect_bowtie_ancestors,
    collect_descendants,
    collect_tree_ancestors,
    collect_tree_descendants,
)


# ============================================================================
# Fixtures
# ============================================================================

def parent(child: str, parent_id: str) -> ParentRelationship:
    return ParentRelationship(person_id=child, related_person_id=parent_id)


def spouse(a: str, b: str) -> SpouseRelationship:
    return SpouseRelationship(person_id=a, related_person_id=b)


def index(*ids: str) -> dict[str, Person]:
    return {person_id: Person(id=person_id) for person_id in ids}


@pytest.fixture
def chain():
    """root -> parent -> grandparent."""
    maps = build_relationship_maps([parent("root", "dad"), parent("dad", "grandpa")])
    return maps, index("root", "dad", "grandpa")


@pytest.fixture
def two_generations():
    """root with both parents married, and the father's parents married."""
    maps = build_relationship_maps([
        parent("root", "dad"), parent("root", "mum"), spouse("dad", "mum"),
        parent("dad", "gdad"), parent("dad", "gmum"), spouse("gdad", "gmum"),
        parent("root", "ghost"),
    ])
    return maps, index("root", "dad", "mum", "gdad", "gmum")


@pytest.fixture
def sample_data():
    path = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
        "sample-family.ged"
    )
    with open(path, encoding="utf-8") as f:
        mapped = map_from_gedcom(parse(f.read()))
    return build_relationship_maps(mapped.relationships), {p.id: p for p in mapped.people}


def parent_child_edges(state: CollectionState):
    return [edge for edge in state.edge_list() if edge.type == "parent-child"]


# ============================================================================
# Relationship Map Tests
# ============================================================================

class TestRelationshipMaps:
    """Tests for build_relationship_maps."""

    def test_parent_maps(self):
        """Test both parent directions."""
        maps = build_relationship_maps([parent("c", "p1"), parent("c", "p2")])
        assert maps.child_to_parents == {"c": ["p1", "p2"]}
        assert maps.parent_to_children == {"p1": ["c"], "p2": ["c"]}
        assert maps.parent_rels == [("c", "p1"), ("c", "p2")]

    def test_spouse_map_is_symmetric(self):
        """Test that one SPOUSE relationship fills both directions."""
        maps = build_relationship_maps([spouse("a", "b")])
        assert maps.spouses_of("a") == ["b"]
        assert maps.spouses_of("b") == ["a"]
        assert maps.spouse_rels == [("a", "b")]

    def test_duplicates_are_not_repeated(self):
        """Test that repeated relationships do not duplicate map entries."""
        maps = build_relationship_maps([spouse("a", "b"), spouse("b", "a"), parent("c", "a"), parent("c", "a")])
        assert maps.spouses_of("a") == ["b"]
        assert maps.parents_of("c") == ["a"]

    def test_plain_mappings(self):
        """Test stored-row dictionaries with camelCase keys."""
        maps = build_relationship_maps([
            {"type": "PARENT", "personId": "c", "relatedPersonId": "p"},
            {"type": "spouse", "person_id": "p", "related_person_id": "q"},
        ])
        assert maps.parents_of("c") == ["p"]
        assert maps.spouses_of("q") == ["p"]

    def test_row_normalisation(self):
        """Test that camelCase keys and lower-case types normalise, snake_case winning."""
        row = normalize_relationship_row({
            "type": "spouse", "personId": "a", "person_id": "b",
            "relatedPersonId": "c", "divorceDate": "2001-02-03",
        })
        assert row == {
            "type": "SPOUSE", "person_id": "b",
            "related_person_id": "c", "divorce_date": "2001-02-03",
        }

    def test_other_types_are_ignored(self):
        """Test that SIBLING and unknown types add nothing."""
        maps = build_relationship_maps([
            SiblingRelationship(person_id="a", related_person_id="b"),
            {"type": "FRIEND", "personId": "a", "relatedPersonId": "b"},
        ])
        assert maps.child_to_parents == {}
        assert maps.spouse_map == {}

    def test_unknown_ids_are_kept(self):
        """Test that no id is validated here."""
        maps = build_relationship_maps([parent("nobody", "missing")])
        assert maps.parents_of("nobody") == ["missing"]
        assert maps.children_of("unrelated") == []


# ============================================================================
# Ancestor Traversal Tests
# ============================================================================

class TestCollectAncestors:
    """Tests for collect_ancestors."""

    def test_generation_bound(self, chain):
        """Test that max generation 1 stops at the parent."""
        maps, people = chain
        state = collect_ancestors("root", 0, 1, maps, people)
        assert state.node_ids == ["root", "dad"]
        assert state.generations == {"root": 0, "dad": 1}
        assert "grandpa" not in state.generations

    def test_full_chain(self, chain):
        """Test a bound high enough for every ancestor."""
        maps, people = chain
        state = collect_ancestors("root", 0, 5, maps, people)
        assert state.generations == {"root": 0, "dad": 1, "grandpa": 2}

    def test_start_beyond_bound(self, chain):
        """Test that starting past the bound collects nothing."""
        maps, people = chain
        assert collect_ancestors("root", 2, 1, maps, people).node_ids == []

    def test_spouses_share_generation(self, two_generations):
        """Test that spouses are added at the same generation with a spouse edge."""
        maps, people = two_generations
        state = collect_ancestors("root", 0, 2, maps, people)
        assert state.generations == {"root": 0, "dad": 1, "mum": 1, "gdad": 2, "gmum": 2}
        spouse_edges = [edge for edge in state.edge_list() if edge.type == "spouse"]
        assert {(edge.source, edge.target) for edge in spouse_edges} == {("dad", "mum"), ("gdad", "gmum")}

    def test_missing_people_are_not_followed(self, two_generations):
        """Test that parents absent from the person index are skipped silently."""
        maps, people = two_generations
        state = collect_ancestors("root", 0, 2, maps, people)
        assert "ghost" not in state.generations
        assert state.anomalies == []

    def test_edges_point_parent_to_child(self, two_generations):
        """Test edge orientation and uniqueness."""
        maps, people = two_generations
        state = collect_ancestors("root", 0, 2, maps, people)
        pairs = [(edge.source, edge.target) for edge in parent_child_edges(state)]
        assert sorted(pairs) == sorted([
            ("dad", "root"), ("mum", "root"), ("gdad", "dad"), ("gmum", "dad"),
        ])

    def test_generation_monotonicity(self, sample_data):
        """Test that every parent is exactly one generation above its child."""
        maps, people = sample_data
        state = collect_ancestors("I9", 0, 4, maps, people)
        for edge in parent_child_edges(state):
            assert state.generations[edge.source] == state.generations[edge.target] + 1

    def test_each_call_has_its_own_state(self, chain):
        """Test that two calls never share a working set."""
        maps, people = chain
        first = collect_ancestors("root", 0, 1, maps, people)
        second = collect_ancestors("dad", 0, 0, maps, people)
        assert first.node_ids == ["root", "dad"]
        assert second.node_ids == ["dad"]

    def test_cycle_is_reported(self):
        """Test that a person who is their own ancestor is reported, not looped."""
        maps = build_relationship_maps([parent("a", "b"), parent("b", "a")])
        state = collect_ancestors("a", 0, 50, maps, index("a", "b"))
        assert state.generations == {"a": 0, "b": 1}
        assert len(state.anomalies) == 1
        assert "Cycle" in state.anomalies[0]

    def test_pedigree_collapse_is_reported(self):
        """Test that an ancestor reached at two depths keeps the first and is reported."""
        maps = build_relationship_maps([
            parent("root", "dad"), parent("root", "mum"),
            parent("dad", "gdad"), parent("gdad", "shared"), parent("mum", "shared"),
        ])
        state = collect_ancestors("root", 0, 3, maps, index("root", "dad", "mum", "gdad", "shared"))

        assert state.generations == {"root": 0, "dad": 1, "gdad": 2, "shared": 3, "mum": 1}
        assert ("shared", "mum") in {(edge.source, edge.target) for edge in parent_child_edges(state)}
        assert len(state.anomalies) == 1
        assert "Pedigree collapse" in state.anomalies[0]
        assert "shared" in state.anomalies[0]

        for edge in parent_child_edges(state):
            if state.generations[edge.source] != state.generations[edge.target] + 1:
                assert any(edge.source in anomaly for anomaly in state.anomalies)


# ============================================================================
# Descendant Traversal Tests
# ============================================================================

class TestCollectDescendants:
    """Tests for collect_descendants."""

    def test_descendants(self, chain):
        """Test the mirror direction from the oldest person."""
        maps, people = chain
        state = collect_descendants("grandpa", 0, 5, maps, people)
        assert state.generations == {"grandpa": 0, "dad": 1, "root": 2}

    def test_bound(self, chain):
        """Test that the bound stops the walk."""
        maps, people = chain
        state = collect_descendants("grandpa", 0, 1, maps, people)
        assert state.node_ids == ["grandpa", "dad"]

    def test_generation_monotonicity(self, sample_data):
        """Test that every child is exactly one generation below its parent."""
        maps, people = sample_data
        state = collect_descendants("I1", 0, 4, maps, people)
        assert state.generations["I9"] == 4
        for edge in parent_child_edges(state):
            assert state.generations[edge.target] == state.generations[edge.source] + 1

    def test_spouses_of_descendants(self, sample_data):
        """Test that in-laws appear at their partner's generation."""
        maps, people = sample_data
        state = collect_descendants("I5", 0, 1, maps, people)
        assert state.generations["I6"] == 0
        assert state.generations["I8"] == 1

    def test_cycle_is_reported(self):
        """Test the cycle guard in the downward direction."""
        maps = build_relationship_maps([parent("a", "b"), parent("b", "a")])
        state = collect_descendants("a", 0, 50, maps, index("a", "b"))
        assert len(state.anomalies) == 1


# ============================================================================
# Bowtie and Tree Traversal Tests
# ============================================================================

class TestCollectBowtieAncestors:
    """Tests for collect_bowtie_ancestors."""

    def test_side_is_stamped(self, two_generations):
        """Test that every collected person carries the given side."""
        maps, people = two_generations
        state = collect_bowtie_ancestors("dad", 1, 2, maps, people, "paternal")
        assert state.generations == {"dad": 1, "gdad": 2, "gmum": 2}
        assert set(state.sides.values()) == {"paternal"}

    def test_spouses_are_not_added(self, two_generations):
        """Test that the bowtie walk only follows parents."""
        maps, people = two_generations
        state = collect_bowtie_ancestors("dad", 1, 1, maps, people, "paternal")
        assert state.node_ids == ["dad"]
        assert state.edge_list() == []

    def test_existing_sides_are_kept(self, two_generations):
        """Test that a shared working set keeps the first side assigned."""
        maps, people = two_generations
        state = CollectionState(sides={})
        state.add_node("root", 0, "center")
        collect_bowtie_ancestors("dad", 1, 2, maps, people, "paternal", state)
        collect_bowtie_ancestors("mum", 1, 2, maps, people, "maternal", state)
        assert state.sides == {
            "root": "center", "dad": "paternal", "gdad": "paternal",
            "gmum": "paternal", "mum": "maternal",
        }


class TestTreeTraversal:
    """Tests for the signed-generation walks."""

    def test_tree_ancestors_are_negative(self, chain):
        """Test ancestors from -1 toward the negative bound."""
        maps, people = chain
        state = collect_tree_ancestors("dad", -1, -2, maps, people)
        assert state.generations == {"dad": -1, "grandpa": -2}

    def test_tree_ancestor_bound(self, chain):
        """Test that -1 as the bound stops after the parents."""
        maps, people = chain
        state = collect_tree_ancestors("dad", -1, -1, maps, people)
        assert state.generations == {"dad": -1}

    def test_tree_descendants_are_positive(self, chain):
        """Test descendants from 1 toward the positive bound."""
        maps, people = chain
        state = collect_tree_descendants("dad", 1, 2, maps, people)
        assert state.generations == {"dad": 1, "root": 2}


# ============================================================================
# Fan Layout Tests
# ============================================================================

class TestFanLayout:
    """Tests for calculate_fan_layout."""

    def test_single_root(self):
        """Test that a lone generation-0 node sits at 0 degrees."""
        assert calculate_fan_layout(["root"], {"root": 0}) == {"root": 0}

    def test_even_division(self):
        """Test that each generation divides the circle independently."""
        angles = calculate_fan_layout(
            ["r", "a", "b", "c", "d", "e"],
            {"r": 0, "a": 1, "b": 1, "c": 2, "d": 2, "e": 2},
        )
        assert angles["r"] == 0
        assert (angles["a"], angles["b"]) == (0, 180)
        assert (angles["c"], angles["d"], angles["e"]) == (0, 120, 240)

    def test_angle_coverage(self):
        """Test that k nodes get exactly {i * 360 / k} with no duplicates."""
        for k in range(1, 9):
            ids = [f"n{i}" for i in range(k)]
            angles = calculate_fan_layout(ids, {node_id: 3 for node_id in ids})
            values = sorted(angles.values())
            assert values == pytest.approx([i * 360 / k for i in range(k)])
            assert len(set(values)) == k
            assert all(0 <= value < 360 for value in values)

    def test_missing_generation_counts_as_zero(self):
        """Test that nodes without a generation share ring 0."""
        angles = calculate_fan_layout(["a", "b"], {"a": 0})
        assert angles == {"a": 0, "b": 180}

    def test_empty_input(self):
        """Test that no nodes give no angles."""
        assert calculate_fan_layout([], {}) == {}

    def test_negative_generations_are_ignored(self):
        """Test that signed tree generations below zero are not placed."""
        angles = calculate_fan_layout(["a", "b"], {"a": 0, "b": -1})
        assert angles == {"a": 0}

    def test_traversal_result(self, two_generations):
        """Test layout over a real traversal."""
        maps, people = two_generations
        state = collect_ancestors("root", 0, 2, maps, people)
        angles = calculate_fan_layout(state.node_ids, state.generations)
        assert set(angles) == set(state.node_ids)
        assert (angles["dad"], angles["mum"]) == (0, 180)
