"""
Generation-bounded walks over the relationship graph.

All collectors share one shape: add the current person (the first visit fixes
its generation), add its spouses at the same generation, then step one
generation toward the bound through parents or children that exist in the
person index. Each call owns its CollectionState; pass one in only to merge
several walks into a single chart.

Generation numbering:
- collect_ancestors / collect_bowtie_ancestors: 0 = root, 1 = parents, ...
- collect_descendants / collect_tree_descendants: 0 = root, 1 = children, ...
- collect_tree_ancestors: -1 = parents, -2 = grandparents, ...
"""

import logging
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field

from .graph import RelationshipMaps

logger = logging.getLogger("treecore.lineage.traversal")

Side = Literal["paternal", "maternal", "center"]
EdgeType = Literal["parent-child", "spouse"]


class ChartEdge(BaseModel):
    source: str
    target: str
    type: EdgeType

    @property
    def id(self) -> str:
        return f"{self.source}-{self.target}"


class CollectionState(BaseModel):
    """Working set of one traversal: nodes with generations, edges, sides, anomalies."""
    generations: dict[str, int] = Field(
        default_factory=dict,
        description="Generation per collected person, in visiting order. Doubles as the node set.",
    )
    edges: dict[tuple[str, str, str], ChartEdge] = Field(default_factory=dict)
    sides: dict[str, Side] | None = None
    anomalies: list[str] = Field(default_factory=list)

    @property
    def node_ids(self) -> list[str]:
        return list(self.generations)

    def has_node(self, person_id: str) -> bool:
        return person_id in self.generations

    def add_node(self, person_id: str, generation: int, side: Side | None = None) -> bool:
        """Record a person the first time it is seen. Returns False if already present."""
        if person_id in self.generations:
            return False
        self.generations[person_id] = generation
        if side is not None:
            if self.sides is None:
                self.sides = {}
            self.sides[person_id] = side
        return True

    def add_parent_edge(self, parent_id: str, child_id: str) -> None:
        self.edges[("parent-child", parent_id, child_id)] = ChartEdge(
            source=parent_id, target=child_id, type="parent-child",
        )

    def add_spouse_edge(self, person_id: str, spouse_id: str) -> None:
        # Spouse edges are keyed by the sorted pair so either direction is the same edge
        first, second = sorted((person_id, spouse_id))
        self.edges.setdefault(("spouse", first, second), ChartEdge(
            source=person_id, target=spouse_id, type="spouse",
        ))

    def edge_list(self) -> list[ChartEdge]:
        return list(self.edges.values())


def _add_spouses(person_id: str, generation: int, maps: RelationshipMaps,
                 person_index: Mapping[str, Any], collected: CollectionState) -> None:
    for spouse_id in maps.spouses_of(person_id):
        if spouse_id not in person_index:
            continue
        if collected.add_node(spouse_id, generation):
            collected.add_spouse_edge(person_id, spouse_id)


def _walk(person_id: str, current_gen: int, max_gen: int, step: int, upward: bool,
          maps: RelationshipMaps, person_index: Mapping[str, Any], collected: CollectionState,
          path: list[str], include_spouses: bool = True, side: Side | None = None) -> None:
    if not person_id:
        return
    if (step > 0 and current_gen > max_gen) or (step < 0 and current_gen < max_gen):
        return

    collected.add_node(person_id, current_gen, side)
    if include_spouses:
        _add_spouses(person_id, current_gen, maps, person_index, collected)

    can_step = current_gen < max_gen if step > 0 else current_gen > max_gen
    if not can_step:
        return

    path.append(person_id)
    relatives = maps.parents_of(person_id) if upward else maps.children_of(person_id)
    for relative_id in relatives:
        if relative_id not in person_index:
            continue
        if relative_id in path:
            message = (
                f"Cycle: {relative_id} is both {'ancestor' if upward else 'descendant'} "
                f"and {'descendant' if upward else 'ancestor'} of {person_id}"
            )
            collected.anomalies.append(message)
            logger.warning(message)
            continue

        if upward:
            collected.add_parent_edge(relative_id, person_id)
        else:
            collected.add_parent_edge(person_id, relative_id)

        existing = collected.generations.get(relative_id)
        if existing is not None and existing != current_gen + step:
            message = (
                f"Pedigree collapse: {relative_id} reached again at generation "
                f"{current_gen + step} through {person_id}; keeping generation {existing}"
            )
            collected.anomalies.append(message)
            logger.info(message)

        _walk(relative_id, current_gen + step, max_gen, step, upward,
              maps, person_index, collected, path, include_spouses, side)
    path.pop()


def collect_ancestors(person_id: str, current_gen: int, max_gen: int, maps: RelationshipMaps,
                      person_index: Mapping[str, Any],
                      collected: CollectionState | None = None) -> CollectionState:
    """Ancestors of ``person_id`` with spouses, from ``current_gen`` up to ``max_gen``."""
    collected = collected if collected is not None else CollectionState()
    _walk(person_id, current_gen, max_gen, 1, True, maps, person_index, collected, [])
    return collected


def collect_descendants(person_id: str, current_gen: int, max_gen: int, maps: RelationshipMaps,
                        person_index: Mapping[str, Any],
                        collected: CollectionState | None = None) -> CollectionState:
    """Descendants of ``person_id`` with spouses, from ``current_gen`` down to ``max_gen``."""
    collected = collected if collected is not None else CollectionState()
    _walk(person_id, current_gen, max_gen, 1, False, maps, person_index, collected, [])
    return collected


def collect_bowtie_ancestors(person_id: str, current_gen: int, max_gen: int, maps: RelationshipMaps,
                             person_index: Mapping[str, Any], side: Side,
                             collected: CollectionState | None = None) -> CollectionState:
    """
    Ancestors of one side of a bowtie chart.

    Like collect_ancestors, but spouses are not added and every newly
    collected person is stamped with ``side``.
    """
    collected = collected if collected is not None else CollectionState(sides={})
    if collected.sides is None:
        collected.sides = {}
    _walk(person_id, current_gen, max_gen, 1, True, maps, person_index, collected, [],
          include_spouses=False, side=side)
    return collected


def collect_tree_ancestors(person_id: str, current_gen: int, max_gen: int, maps: RelationshipMaps,
                           person_index: Mapping[str, Any],
                           collected: CollectionState | None = None) -> CollectionState:
    """
    Ancestors with negative generations for tree charts.

    Starts at a negative ``current_gen`` (usually -1) and walks toward the
    more negative ``max_gen``.
    """
    collected = collected if collected is not None else CollectionState()
    _walk(person_id, current_gen, max_gen, -1, True, maps, person_index, collected, [])
    return collected


def collect_tree_descendants(person_id: str, current_gen: int, max_gen: int, maps: RelationshipMaps,
                             person_index: Mapping[str, Any],
                             collected: CollectionState | None = None) -> CollectionState:
    """Descendants with positive generations for tree charts."""
    collected = collected if collected is not None else CollectionState()
    _walk(person_id, current_gen, max_gen, 1, False, maps, person_index, collected, [])
    return collected
