"""Export direction: turn people and relationships back into GEDCOM 5.5.1 text.

Output is built as a tree of ParsedRecord objects first and serialised in a
second step, so the same tree shape the parser produces is what gets written.
"""

import logging
import re
from collections.abc import Mapping
from datetime import date
from typing import Any, Iterable

from .dates import format_gedcom_date
from .models import (
    GeneratorOptions,
    Gender,
    ParentRelationship,
    ParsedRecord,
    Person,
    RELATIONSHIP_TYPES,
    SpouseRelationship,
    normalize_relationship_row,
    relationship_adapter,
)

logger = logging.getLogger("treecore.lineage.generator")

SUBMITTER_XREF = "SUBM1"
_SAFE_XREF_RE = re.compile(r"^[A-Za-z0-9_]+$")

GENDER_TO_SEX = {
    Gender.MALE: "M",
    Gender.FEMALE: "F",
    Gender.UNKNOWN: "U",
}


def _record(level: int, tag: str, value: str | None = None, xref: str | None = None,
            children: list[ParsedRecord] | None = None) -> ParsedRecord:
    return ParsedRecord(level=level, tag=tag, value=value, xref=xref, children=children or [])


def _pointer(xref: str) -> str:
    return f"@{xref}@"


# ============================================================================
# Cross-reference ids
# ============================================================================

class _XrefAllocator:
    """Hands out unique cross-reference ids, keeping person ids where possible."""

    def __init__(self):
        self.used: set[str] = {SUBMITTER_XREF}
        self._counters: dict[str, int] = {}

    def next(self, prefix: str) -> str:
        number = self._counters.get(prefix, 0)
        while True:
            number += 1
            candidate = f"{prefix}{number}"
            if candidate not in self.used:
                self._counters[prefix] = number
                self.used.add(candidate)
                return candidate

    def is_safe(self, wanted: str) -> bool:
        return bool(_SAFE_XREF_RE.match(wanted)) and wanted != "VOID" and wanted not in self.used

    def claim(self, wanted: str) -> str:
        self.used.add(wanted)
        return wanted


# ============================================================================
# Family synthesis
# ============================================================================

class _Family:
    def __init__(self, xref: str, partners: list[str], spouse: SpouseRelationship | None = None):
        self.xref = xref
        self.partners = partners
        self.spouse = spouse
        self.children: list[str] = []


def _coerce_relationships(relationships: Iterable[Any]) -> list:
    """Relationship models from models or stored rows in either key style."""
    coerced = []
    for relationship in relationships:
        if isinstance(relationship, Mapping):
            row = normalize_relationship_row(relationship)
            if row.get("type") not in RELATIONSHIP_TYPES:
                logger.warning(f"Skipping relationship with unknown type {row.get('type')!r}")
                continue
            relationship = relationship_adapter.validate_python(row)
        coerced.append(relationship)
    return coerced


def _order_partners(first: str, second: str, people: dict[str, Person]) -> list[str]:
    """Husband slot first: a female partner goes to WIFE unless both are female."""
    first_female = people[first].gender == Gender.FEMALE
    second_female = people[second].gender == Gender.FEMALE
    if first_female and not second_female:
        return [second, first]
    return [first, second]


def _build_families(people: dict[str, Person], relationships: list,
                    allocator: _XrefAllocator) -> list[_Family]:
    families: list[_Family] = []
    by_pair: dict[frozenset[str], _Family] = {}
    single_parent: dict[str, _Family] = {}
    parents_of: dict[str, list[str]] = {}

    for relationship in relationships:
        if isinstance(relationship, SpouseRelationship):
            a, b = relationship.person_id, relationship.related_person_id
            if a == b or a not in people or b not in people:
                logger.debug(f"Skipping spouse relationship {a}-{b}")
                continue
            if relationship.pair in by_pair:
                continue
            family = _Family(allocator.next("F"), _order_partners(a, b, people), relationship)
            by_pair[relationship.pair] = family
            families.append(family)
        elif isinstance(relationship, ParentRelationship):
            child, parent = relationship.child_id, relationship.parent_id
            if child == parent or child not in people or parent not in people:
                logger.debug(f"Skipping parent relationship {child}->{parent}")
                continue
            parents = parents_of.setdefault(child, [])
            if parent not in parents:
                parents.append(parent)

    for child, parents in parents_of.items():
        remaining = list(parents)
        # A child belongs to a couple's family only when both partners are its parents
        for i, first in enumerate(parents):
            for second in parents[i + 1:]:
                family = by_pair.get(frozenset((first, second)))
                if family is None or first not in remaining or second not in remaining:
                    continue
                family.children.append(child)
                remaining.remove(first)
                remaining.remove(second)

        for parent in remaining:
            family = single_parent.get(parent)
            if family is None:
                family = _Family(allocator.next("F"), [parent])
                single_parent[parent] = family
                families.append(family)
            family.children.append(child)

    return families


# ============================================================================
# Record construction
# ============================================================================

def _event(tag: str, when: date | None, place: str | None) -> ParsedRecord:
    event = _record(1, tag)
    if when is not None:
        event.children.append(_record(2, "DATE", format_gedcom_date(when)))
    if place:
        event.children.append(_record(2, "PLAC", place))
    return event


def _name_value(person: Person) -> str | None:
    first = person.first_name.replace("/", " ").strip()
    last = person.last_name.replace("/", " ").strip()
    if not first and not last:
        return None
    if not last:
        return first
    return f"{first} /{last}/".strip()


def _individual_record(person: Person, xref: str, fams: list[str], famc: list[str]) -> ParsedRecord:
    record = _record(0, "INDI", xref=xref)

    name = _name_value(person)
    if name:
        record.children.append(_record(1, "NAME", name))
    record.children.append(_record(1, "SEX", GENDER_TO_SEX[person.gender]))

    if person.date_of_birth or person.birth_place:
        record.children.append(_event("BIRT", person.date_of_birth, person.birth_place))

    if not person.is_living:
        death = _event("DEAT", person.date_of_passing, person.death_place)
        if not death.children:
            death.value = "Y"
        record.children.append(death)

    if person.profession:
        record.children.append(_record(1, "OCCU", person.profession))
    if person.bio:
        record.children.append(_record(1, "NOTE", person.bio))

    for family in fams:
        record.children.append(_record(1, "FAMS", _pointer(family)))
    for family in famc:
        record.children.append(_record(1, "FAMC", _pointer(family)))
    return record


def _family_record(family: _Family, person_xrefs: dict[str, str], people: dict[str, Person]) -> ParsedRecord:
    record = _record(0, "FAM", xref=family.xref)

    if len(family.partners) == 2:
        husband, wife = family.partners
        record.children.append(_record(1, "HUSB", _pointer(person_xrefs[husband])))
        record.children.append(_record(1, "WIFE", _pointer(person_xrefs[wife])))
    else:
        parent = family.partners[0]
        tag = "WIFE" if people[parent].gender == Gender.FEMALE else "HUSB"
        record.children.append(_record(1, tag, _pointer(person_xrefs[parent])))

    if family.spouse is not None:
        if family.spouse.marriage_date:
            record.children.append(_event("MARR", family.spouse.marriage_date, None))
        if family.spouse.divorce_date:
            record.children.append(_event("DIV", family.spouse.divorce_date, None))

    for child in family.children:
        record.children.append(_record(1, "CHIL", _pointer(person_xrefs[child])))
    return record


def _header_records(options: GeneratorOptions) -> list[ParsedRecord]:
    export_date = options.export_date or date.today()
    header = _record(0, "HEAD", children=[
        _record(1, "SOUR", options.source_program, children=[
            _record(2, "NAME", options.source_program),
            _record(2, "VERS", options.source_version),
        ]),
        _record(1, "DATE", format_gedcom_date(export_date)),
        _record(1, "GEDC", children=[
            _record(2, "VERS", "5.5.1"),
            _record(2, "FORM", "LINEAGE-LINKED"),
        ]),
        _record(1, "CHAR", "UTF-8"),
        _record(1, "SUBM", _pointer(SUBMITTER_XREF)),
    ])
    submitter = _record(0, "SUBM", xref=SUBMITTER_XREF, children=[
        _record(1, "NAME", options.submitter_name),
    ])
    return [header, submitter]


def build_export_records(people: list[Person], relationships: Iterable[Any],
                         options: GeneratorOptions | None = None) -> list[ParsedRecord]:
    """Build the full top-level record list (HEAD through TRLR) for an export."""
    options = options or GeneratorOptions()

    allocator = _XrefAllocator()
    people_by_id: dict[str, Person] = {}
    person_xrefs: dict[str, str] = {}
    for person in people:
        if person.id in people_by_id:
            logger.warning(f"Duplicate person id {person.id!r} skipped during export")
            continue
        people_by_id[person.id] = person
        if allocator.is_safe(person.id):
            person_xrefs[person.id] = allocator.claim(person.id)
    # Ids that cannot be written as-is get fresh ids after all usable ones are taken
    for person_id in people_by_id:
        if person_id not in person_xrefs:
            person_xrefs[person_id] = allocator.next("I")

    families = _build_families(people_by_id, _coerce_relationships(relationships), allocator)

    spouse_in: dict[str, list[str]] = {}
    child_in: dict[str, list[str]] = {}
    for family in families:
        for partner in family.partners:
            spouse_in.setdefault(partner, []).append(family.xref)
        for child in family.children:
            child_in.setdefault(child, []).append(family.xref)

    records = _header_records(options)
    for person_id, person in people_by_id.items():
        records.append(_individual_record(
            person, person_xrefs[person_id], spouse_in.get(person_id, []), child_in.get(person_id, []),
        ))
    for family in families:
        records.append(_family_record(family, person_xrefs, people_by_id))
    records.append(_record(0, "TRLR"))
    return records


# ============================================================================
# Serialisation
# ============================================================================

def _split_long(value: str, limit: int) -> list[str]:
    """Split a value into chunks of at most ``limit`` chars, never cutting next to a space."""
    chunks = []
    while len(value) > limit:
        cut = limit
        while cut > 1 and (value[cut - 1] == " " or value[cut] == " "):
            cut -= 1
        if cut <= 1:
            cut = limit
        chunks.append(value[:cut])
        value = value[cut:]
    chunks.append(value)
    return chunks


def serialize(records: list[ParsedRecord], max_line_length: int = 80) -> str:
    """Write records as GEDCOM lines, using CONT for newlines and CONC for long values."""
    lines: list[str] = []

    def value_room(prefix: str) -> int:
        return max(max_line_length - len(prefix) - 1, 10)

    def element_to_lines(element: ParsedRecord, level: int) -> None:
        if element.xref:
            prefix = f"{level} {_pointer(element.xref)} {element.tag}"
        else:
            prefix = f"{level} {element.tag}"

        segments = (element.value or "").split("\n")
        first_chunks = _split_long(segments[0], value_room(prefix)) if segments[0] else [""]
        lines.append(f"{prefix} {first_chunks[0]}" if first_chunks[0] else prefix)

        conc_prefix = f"{level + 1} CONC"
        cont_prefix = f"{level + 1} CONT"
        for chunk in first_chunks[1:]:
            lines.append(f"{conc_prefix} {chunk}")
        for segment in segments[1:]:
            chunks = _split_long(segment, value_room(cont_prefix)) if segment else [""]
            lines.append(f"{cont_prefix} {chunks[0]}" if chunks[0] else cont_prefix)
            for chunk in chunks[1:]:
                lines.append(f"{conc_prefix} {chunk}")

        for child in element.children:
            element_to_lines(child, level + 1)

    for record in records:
        element_to_lines(record, 0)

    return "\n".join(lines) + "\n"


def generate(people: list[Person], relationships: Iterable[Any],
             options: GeneratorOptions | None = None) -> str:
    """
    Generate GEDCOM 5.5.1 text for a set of people and relationships.

    Never fails on incomplete people: optional fields that are missing are
    simply not written. Relationships that mention unknown people and
    SIBLING relationships are not written. Empty input still yields a header,
    a submitter record and a trailer.
    """
    options = options or GeneratorOptions()
    records = build_export_records(people, relationships, options)
    text = serialize(records, options.max_line_length)
    family_count = sum(1 for record in records if record.tag == "FAM")
    logger.info(f"Generated GEDCOM with {len(people)} people and {family_count} families")
    return text
