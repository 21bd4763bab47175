"""Import direction: turn a parsed GEDCOM file into people and relationships."""

import logging
from datetime import date

from .dates import DatePrecision, parse_gedcom_date
from .models import (
    GedcomFile,
    Gender,
    MappingError,
    MappingErrorType,
    MappingResult,
    ParentRelationship,
    ParsedRecord,
    Person,
    SpouseRelationship,
)

logger = logging.getLogger("treecore.lineage.mapper")

NULL_POINTER = "VOID"

SEX_TO_GENDER = {
    "M": Gender.MALE,
    "F": Gender.FEMALE,
    "U": Gender.UNKNOWN,
    "X": Gender.UNKNOWN,
}


def parse_name(value: str | None) -> tuple[str, str]:
    """
    Split a GEDCOM personal name into (given, surname).

    The surname is the part enclosed in slashes: "John /Doe/" gives
    ("John", "Doe"). Text after the closing slash (a suffix such as "Jr.")
    is kept with the given names.
    """
    if not value:
        return "", ""
    text = value.strip()
    if "/" not in text:
        return " ".join(text.split()), ""

    before, _, rest = text.partition("/")
    surname, _, after = rest.partition("/")
    given = " ".join(f"{before} {after}".split())
    return given, " ".join(surname.split())


class _MappingContext:
    """Accumulates output and diagnostics for a single mapping call."""

    def __init__(self, file: GedcomFile):
        self.file = file
        self.people: list[Person] = []
        self.relationships: list = []
        self.warnings: list[str] = []
        self.errors: list[MappingError] = []
        self.person_ids: set[str] = set()
        self._relationship_keys: set[tuple] = set()
        self._notes = {
            record.xref: record for record in file.other_records
            if record.tag == "NOTE" and record.xref
        }

    def error(self, kind: MappingErrorType, message: str, source: str,
              record_id: str | None = None, field: str | None = None) -> None:
        self.errors.append(MappingError(
            message=message, type=kind, source=source, record_id=record_id, field=field,
        ))

    def add_relationship(self, relationship) -> None:
        if isinstance(relationship, SpouseRelationship):
            key = ("SPOUSE", relationship.pair)
        else:
            key = (relationship.type, relationship.person_id, relationship.related_person_id)
        if key in self._relationship_keys:
            return
        self._relationship_keys.add(key)
        self.relationships.append(relationship)

    def read_date(self, event: ParsedRecord, record_id: str, source: str, field: str) -> date | None:
        """Exact dates only; anything less precise is reported and left unset."""
        raw = event.child_value("DATE")
        parsed = parse_gedcom_date(raw)
        if parsed is None:
            return None
        if parsed.precision == DatePrecision.EXACT:
            return parsed.value
        if parsed.precision == DatePrecision.INVALID:
            self.error(
                MappingErrorType.INVALID_DATE,
                f"Invalid date {raw!r} in {field} of {record_id}",
                source, record_id, field,
            )
            return None
        self.warnings.append(f"{record_id}: {field} {raw!r} is not an exact date; left unset")
        return None

    def read_place(self, event: ParsedRecord, record_id: str, field: str) -> str | None:
        place = event.first("PLAC")
        if place is None:
            return None
        value = (place.value or "").strip()
        if not value:
            self.warnings.append(f"{record_id}: {field} is empty")
            return None
        return value

    def read_notes(self, record: ParsedRecord, record_id: str) -> str | None:
        texts = []
        for note in record.all("NOTE"):
            pointer = note.pointer
            if pointer is not None:
                target = self._notes.get(pointer)
                if target is None:
                    self.warnings.append(f"{record_id}: note @{pointer}@ not found")
                    continue
                note = target
            if note.value and note.value.strip():
                texts.append(note.value.strip())
        return "\n".join(texts) or None


def _map_individual(context: _MappingContext, record: ParsedRecord) -> Person:
    person_id = record.xref

    name_record = record.first("NAME")
    first_name, last_name = parse_name(name_record.value if name_record else None)
    if name_record is not None:
        first_name = first_name or (name_record.child_value("GIVN") or "").strip()
        last_name = last_name or (name_record.child_value("SURN") or "").strip()

    sex = (record.child_value("SEX") or "").strip().upper()
    gender = SEX_TO_GENDER.get(sex, Gender.UNKNOWN)
    if sex and sex not in SEX_TO_GENDER:
        context.warnings.append(f"{person_id}: unrecognized SEX value {sex!r}; using unknown")

    date_of_birth = None
    birth_place = None
    birth = record.first("BIRT")
    if birth is not None:
        date_of_birth = context.read_date(birth, person_id, "INDI", "BIRT.DATE")
        birth_place = context.read_place(birth, person_id, "BIRT.PLAC")

    date_of_passing = None
    death_place = None
    death = record.first("DEAT")
    if death is not None:
        date_of_passing = context.read_date(death, person_id, "INDI", "DEAT.DATE")
        death_place = context.read_place(death, person_id, "DEAT.PLAC")

    occupation = (record.child_value("OCCU") or "").strip() or None

    return Person(
        id=person_id,
        first_name=first_name,
        last_name=last_name,
        gender=gender,
        date_of_birth=date_of_birth,
        date_of_passing=date_of_passing,
        is_living=death is None,
        birth_place=birth_place,
        death_place=death_place,
        profession=occupation,
        bio=context.read_notes(record, person_id),
    )


def _family_member(context: _MappingContext, family: ParsedRecord, tag: str) -> str | None:
    links = [link for link in family.all(tag) if link.pointer and link.pointer != NULL_POINTER]
    if not links:
        return None
    if len(links) > 1:
        context.warnings.append(f"{family.xref}: more than one {tag}; using @{links[0].pointer}@")
    pointer = links[0].pointer
    if pointer not in context.person_ids:
        context.error(
            MappingErrorType.BROKEN_REFERENCE,
            f"Broken {tag} reference in family {family.xref}: @{pointer}@",
            "FAM", family.xref, tag,
        )
        return None
    return pointer


def _map_family(context: _MappingContext, family: ParsedRecord) -> None:
    husband = _family_member(context, family, "HUSB")
    wife = _family_member(context, family, "WIFE")

    if husband and wife and husband != wife:
        marriage = family.first("MARR")
        divorce = family.first("DIV")
        context.add_relationship(SpouseRelationship(
            person_id=husband,
            related_person_id=wife,
            marriage_date=context.read_date(marriage, family.xref, "FAM", "MARR.DATE") if marriage else None,
            divorce_date=context.read_date(divorce, family.xref, "FAM", "DIV.DATE") if divorce else None,
        ))

    parents = [parent for parent in (husband, wife) if parent]
    for link in family.all("CHIL"):
        child = link.pointer
        if not child or child == NULL_POINTER:
            continue
        if child not in context.person_ids:
            context.error(
                MappingErrorType.BROKEN_REFERENCE,
                f"Broken child reference in family {family.xref}: @{child}@",
                "FAM", family.xref, "CHIL",
            )
            continue
        for parent in parents:
            if parent == child:
                context.warnings.append(f"{family.xref}: @{child}@ listed as its own parent; skipped")
                continue
            context.add_relationship(ParentRelationship(person_id=child, related_person_id=parent))


def map_from_gedcom(file: GedcomFile) -> MappingResult:
    """
    Map individuals to people and families to relationships.

    Each family yields at most one SPOUSE relationship (husband, wife) and one
    PARENT relationship per child and present parent, oriented child to
    parent. References that do not resolve to a mapped individual are
    reported as ``broken_reference`` errors and never produce relationships.
    """
    context = _MappingContext(file)

    for record in file.individuals:
        if not record.xref:
            context.error(
                MappingErrorType.INVALID_FORMAT,
                f"Individual on line {record.line_number} has no xref id",
                "INDI", None, "id",
            )
            continue
        if record.xref in context.person_ids:
            context.error(
                MappingErrorType.INVALID_FORMAT,
                f"Duplicate individual id @{record.xref}@; keeping the first record",
                "INDI", record.xref, "id",
            )
            continue
        context.people.append(_map_individual(context, record))
        context.person_ids.add(record.xref)

    family_ids: set[str] = set()
    for record in file.families:
        if not record.xref:
            context.error(
                MappingErrorType.INVALID_FORMAT,
                f"Family on line {record.line_number} has no xref id",
                "FAM", None, "id",
            )
            continue
        if record.xref in family_ids:
            context.error(
                MappingErrorType.INVALID_FORMAT,
                f"Duplicate family id @{record.xref}@; keeping the first record",
                "FAM", record.xref, "id",
            )
            continue
        family_ids.add(record.xref)
        _map_family(context, record)

    logger.info(
        f"Mapped {len(context.people)} people and {len(context.relationships)} relationships "
        f"({len(context.warnings)} warnings, {len(context.errors)} errors)"
    )

    return MappingResult(
        people=context.people,
        relationships=context.relationships,
        warnings=context.warnings,
        errors=context.errors,
    )
