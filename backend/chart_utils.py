"""Chart payloads (nodes, edges, metadata) built from in-memory people and relationships."""

import logging
from typing import Any, Iterable, Literal

from pydantic import BaseModel, Field

from config import get_settings
from gedcom_utils import find_person
from lineage.graph import RelationshipMaps, build_relationship_maps
from lineage.layout import calculate_fan_layout
from lineage.models import Gender, Person
from lineage.traversal import (
    CollectionState,
    Side,
    collect_ancestors,
    collect_bowtie_ancestors,
    collect_descendants,
    collect_tree_ancestors,
    collect_tree_descendants,
)

logger = logging.getLogger("treecore.chart_utils")

ChartType = Literal["ancestor", "descendant", "hourglass", "fan", "bowtie", "tree"]
CHART_TYPES: tuple[str, ...] = ("ancestor", "descendant", "hourglass", "fan", "bowtie", "tree")


# ============================================================================
# Payload Models
# ============================================================================

class ChartNode(BaseModel):
    id: str
    first_name: str
    last_name: str
    gender: Gender
    date_of_birth: str | None = None
    date_of_passing: str | None = None
    is_living: bool = True
    generation: int = 0
    angle: float | None = Field(default=None, description="Degrees around the fan, fan charts only.")
    side: Side | None = Field(default=None, description="Bowtie charts only.")


class ChartLink(BaseModel):
    id: str
    source: str
    target: str
    type: Literal["parent-child", "spouse"]


class ChartMetadata(BaseModel):
    chart_type: ChartType
    total_generations: int
    total_people: int
    root_person_id: str
    anomalies: list[str] = Field(default_factory=list)
    paternal_count: int | None = None
    maternal_count: int | None = None


class ChartData(BaseModel):
    nodes: list[ChartNode]
    edges: list[ChartLink]
    metadata: ChartMetadata


# ============================================================================
# Helpers
# ============================================================================

def _not_found(identifier: str) -> str:
    return (
        f"Person not found: '{identifier}'. "
        "Please use a valid GEDCOM ID (e.g., '@I1@') or the person's full name."
    )


def _check_generations(*counts: int) -> str | None:
    limit = get_settings().max_chart_generations
    for count in counts:
        if count < 1 or count > limit:
            return f"Generations must be between 1 and {limit}, got {count}."
    return None


def _prepare(people: list[Person], relationships: Iterable[Any],
             identifier: str) -> tuple[Person, dict[str, Person], RelationshipMaps] | str:
    root = find_person(people, identifier)
    if root is None:
        return _not_found(identifier)
    person_index = {person.id: person for person in people}
    return root, person_index, build_relationship_maps(relationships)


def _build_nodes(collected: CollectionState, person_index: dict[str, Person],
                 angles: dict[str, float] | None = None) -> list[ChartNode]:
    nodes = []
    for person_id in collected.node_ids:
        person = person_index.get(person_id)
        if person is None:
            continue
        nodes.append(ChartNode(
            id=person.id,
            first_name=person.first_name,
            last_name=person.last_name,
            gender=person.gender,
            date_of_birth=person.date_of_birth.isoformat() if person.date_of_birth else None,
            date_of_passing=person.date_of_passing.isoformat() if person.date_of_passing else None,
            is_living=person.is_living,
            generation=collected.generations.get(person_id, 0),
            angle=angles.get(person_id, 0.0) if angles is not None else None,
            side=collected.sides.get(person_id, "center") if collected.sides is not None else None,
        ))
    return nodes


def _build_edges(collected: CollectionState) -> list[ChartLink]:
    edges = []
    seen: set[str] = set()
    for edge in collected.edge_list():
        if edge.id in seen:
            continue
        seen.add(edge.id)
        edges.append(ChartLink(id=edge.id, source=edge.source, target=edge.target, type=edge.type))
    return edges


def _chart(chart_type: ChartType, root: Person, collected: CollectionState, person_index: dict[str, Person],
           total_generations: int, angles: dict[str, float] | None = None) -> ChartData:
    nodes = _build_nodes(collected, person_index, angles)
    metadata = ChartMetadata(
        chart_type=chart_type,
        total_generations=total_generations,
        total_people=len(nodes),
        root_person_id=root.id,
        anomalies=collected.anomalies,
    )
    if chart_type == "bowtie":
        metadata.paternal_count = sum(1 for node in nodes if node.side == "paternal")
        metadata.maternal_count = sum(1 for node in nodes if node.side == "maternal")
    logger.info(f"Built {chart_type} chart for {root.id}: {len(nodes)} people")
    return ChartData(nodes=nodes, edges=_build_edges(collected), metadata=metadata)


# ============================================================================
# Chart Builders
# ============================================================================

def get_ancestor_chart_data(people: list[Person], relationships: Iterable[Any],
                            person_id: str, generations: int = 3) -> ChartData | str:
    """
    Ancestor chart (going UP) from a person of interest.
    Returns chart data, or an error message string if the person is not found.
    """
    error = _check_generations(generations)
    if error:
        return error
    prepared = _prepare(people, relationships, person_id)
    if isinstance(prepared, str):
        return prepared
    root, person_index, maps = prepared

    collected = collect_ancestors(root.id, 0, generations, maps, person_index)
    return _chart("ancestor", root, collected, person_index, generations)


def get_descendant_chart_data(people: list[Person], relationships: Iterable[Any],
                              person_id: str, generations: int = 3) -> ChartData | str:
    """Descendant chart (going DOWN) from a person of interest."""
    error = _check_generations(generations)
    if error:
        return error
    prepared = _prepare(people, relationships, person_id)
    if isinstance(prepared, str):
        return prepared
    root, person_index, maps = prepared

    collected = collect_descendants(root.id, 0, generations, maps, person_index)
    return _chart("descendant", root, collected, person_index, generations)


def get_hourglass_chart_data(people: list[Person], relationships: Iterable[Any], person_id: str,
                             ancestor_generations: int = 3, descendant_generations: int = 3) -> ChartData | str:
    """
    Ancestors and descendants in one chart.

    Both walks start at the root with generation 0 and share one working set,
    so ancestor and descendant generations both count up from the root.
    """
    error = _check_generations(ancestor_generations, descendant_generations)
    if error:
        return error
    prepared = _prepare(people, relationships, person_id)
    if isinstance(prepared, str):
        return prepared
    root, person_index, maps = prepared

    collected = collect_ancestors(root.id, 0, ancestor_generations, maps, person_index)
    collect_descendants(root.id, 0, descendant_generations, maps, person_index, collected)
    return _chart("hourglass", root, collected, person_index,
                  ancestor_generations + descendant_generations + 1)


def get_fan_chart_data(people: list[Person], relationships: Iterable[Any],
                       person_id: str, generations: int = 4) -> ChartData | str:
    """Ancestor chart with an angle per node for radial layout."""
    error = _check_generations(generations)
    if error:
        return error
    prepared = _prepare(people, relationships, person_id)
    if isinstance(prepared, str):
        return prepared
    root, person_index, maps = prepared

    collected = collect_ancestors(root.id, 0, generations, maps, person_index)
    angles = calculate_fan_layout(collected.node_ids, collected.generations)
    return _chart("fan", root, collected, person_index, generations, angles)


def get_bowtie_chart_data(people: list[Person], relationships: Iterable[Any],
                          person_id: str, generations: int = 3) -> ChartData | str:
    """
    Father's and mother's ancestries side by side.

    The root sits at the center; each parent's line is collected from
    generation 1, marked paternal for a male parent and maternal otherwise.
    """
    error = _check_generations(generations)
    if error:
        return error
    prepared = _prepare(people, relationships, person_id)
    if isinstance(prepared, str):
        return prepared
    root, person_index, maps = prepared

    collected = CollectionState(sides={})
    collected.add_node(root.id, 0, "center")

    for parent_id in maps.parents_of(root.id):
        parent = person_index.get(parent_id)
        if parent is None:
            continue
        collected.add_parent_edge(parent_id, root.id)
        side = "paternal" if parent.gender == Gender.MALE else "maternal"
        collect_bowtie_ancestors(parent_id, 1, generations, maps, person_index, side, collected)

    return _chart("bowtie", root, collected, person_index, generations)


def get_tree_chart_data(people: list[Person], relationships: Iterable[Any], person_id: str,
                        ancestor_generations: int = 2, descendant_generations: int = 2) -> ChartData | str:
    """
    Family tree with signed generations: ancestors negative, descendants positive.

    The root and its spouses sit at 0. Children of the root's spouses are
    included even when the root is not their parent.
    """
    error = _check_generations(ancestor_generations, descendant_generations)
    if error:
        return error
    prepared = _prepare(people, relationships, person_id)
    if isinstance(prepared, str):
        return prepared
    root, person_index, maps = prepared

    collected = CollectionState()
    collected.add_node(root.id, 0)
    root_spouses = [spouse for spouse in maps.spouses_of(root.id) if spouse in person_index]
    for spouse_id in root_spouses:
        if collected.add_node(spouse_id, 0):
            collected.add_spouse_edge(root.id, spouse_id)

    for parent_id in maps.parents_of(root.id):
        if parent_id not in person_index:
            continue
        collected.add_parent_edge(parent_id, root.id)
        collect_tree_ancestors(parent_id, -1, -ancestor_generations, maps, person_index, collected)

    for child_id in maps.children_of(root.id):
        if child_id not in person_index:
            continue
        collected.add_parent_edge(root.id, child_id)
        collect_tree_descendants(child_id, 1, descendant_generations, maps, person_index, collected)

    for spouse_id in root_spouses:
        for child_id in maps.children_of(spouse_id):
            if child_id not in person_index or collected.has_node(child_id):
                continue
            collected.add_parent_edge(spouse_id, child_id)
            collect_tree_descendants(child_id, 1, descendant_generations, maps, person_index, collected)

    values = list(collected.generations.values())
    return _chart("tree", root, collected, person_index, max(values) - min(values) + 1)


def get_chart_data(chart_type: str, people: list[Person], relationships: Iterable[Any],
                   person_id: str, generations: int = 3) -> ChartData | str:
    """Dispatch by chart type name; hourglass and tree use ``generations`` both ways."""
    relationships = list(relationships)
    if chart_type == "ancestor":
        return get_ancestor_chart_data(people, relationships, person_id, generations)
    if chart_type == "descendant":
        return get_descendant_chart_data(people, relationships, person_id, generations)
    if chart_type == "hourglass":
        return get_hourglass_chart_data(people, relationships, person_id, generations, generations)
    if chart_type == "fan":
        return get_fan_chart_data(people, relationships, person_id, generations)
    if chart_type == "bowtie":
        return get_bowtie_chart_data(people, relationships, person_id, generations)
    if chart_type == "tree":
        return get_tree_chart_data(people, relationships, person_id, generations, generations)
    return f"Unknown chart type: '{chart_type}'. Expected one of: {', '.join(CHART_TYPES)}."
