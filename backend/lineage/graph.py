"""Adjacency maps over a flat relationship list, used by every traversal."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from .models import RelationshipType, normalize_relationship_row

logger = logging.getLogger("treecore.lineage.graph")


class RelationshipMaps(BaseModel):
    """
    Lookup tables for traversal.

    Lists keep first-seen order and hold no duplicates, so traversal output is
    deterministic for a given relationship order. ``parent_rels`` and
    ``spouse_rels`` are the (child, parent) and (a, b) pairs as given.
    """
    child_to_parents: dict[str, list[str]] = Field(default_factory=dict)
    parent_to_children: dict[str, list[str]] = Field(default_factory=dict)
    spouse_map: dict[str, list[str]] = Field(default_factory=dict)
    parent_rels: list[tuple[str, str]] = Field(default_factory=list)
    spouse_rels: list[tuple[str, str]] = Field(default_factory=list)

    def parents_of(self, person_id: str) -> list[str]:
        return self.child_to_parents.get(person_id, [])

    def children_of(self, person_id: str) -> list[str]:
        return self.parent_to_children.get(person_id, [])

    def spouses_of(self, person_id: str) -> list[str]:
        return self.spouse_map.get(person_id, [])


def _fields(relationship: Any) -> tuple[str | None, str | None, str | None]:
    """Read (type, person_id, related_person_id) from a model or a plain mapping."""
    if isinstance(relationship, Mapping):
        row = normalize_relationship_row(relationship)
        return row.get("type"), row.get("person_id"), row.get("related_person_id")
    kind = getattr(relationship, "type", None)
    if kind is not None:
        kind = str(getattr(kind, "value", kind)).upper()
    return (kind, getattr(relationship, "person_id", None),
            getattr(relationship, "related_person_id", None))


def _append(table: dict[str, list[str]], key: str, value: str) -> None:
    values = table.setdefault(key, [])
    if value not in values:
        values.append(value)


def build_relationship_maps(relationships: Iterable[Any]) -> RelationshipMaps:
    """
    Build child/parent/spouse lookups from PARENT and SPOUSE relationships.

    A PARENT relationship (child, parent) fills both parent directions; a
    SPOUSE relationship fills the spouse map both ways. Other types and
    entries missing an id are ignored. No id is checked against any person
    list here.
    """
    maps = RelationshipMaps()
    for relationship in relationships:
        kind, person_id, related_id = _fields(relationship)
        if not person_id or not related_id:
            continue

        if kind == RelationshipType.PARENT:
            _append(maps.child_to_parents, person_id, related_id)
            _append(maps.parent_to_children, related_id, person_id)
            maps.parent_rels.append((person_id, related_id))
        elif kind == RelationshipType.SPOUSE:
            _append(maps.spouse_map, person_id, related_id)
            _append(maps.spouse_map, related_id, person_id)
            maps.spouse_rels.append((person_id, related_id))

    logger.debug(
        f"Built relationship maps: {len(maps.parent_rels)} parent links, "
        f"{len(maps.spouse_rels)} spouse links"
    )
    return maps
