"""Data models shared by the parser, validator, mapper and generator."""

from collections.abc import Mapping
from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


# ============================================================================
# Record tree
# ============================================================================

class ParsedRecord(BaseModel):
    """One line of a GEDCOM file together with its nested sub-records."""
    level: int = Field(ge=0, description="Nesting depth, 0 for top-level records.")
    tag: str = Field(description="Record tag such as INDI, NAME, BIRT or CHIL.")
    xref: str | None = Field(
        default=None,
        description="Cross-reference id of this record without the '@' delimiters.",
    )
    value: str | None = None
    line_number: int | None = None
    children: list["ParsedRecord"] = Field(default_factory=list)

    @property
    def pointer(self) -> str | None:
        """The referenced id when the value is a single '@ID@' token."""
        value = (self.value or "").strip()
        if len(value) > 2 and value.startswith("@") and value.endswith("@") and "@" not in value[1:-1]:
            return value[1:-1]
        return None

    def first(self, tag: str) -> "ParsedRecord | None":
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def all(self, tag: str) -> list["ParsedRecord"]:
        return [child for child in self.children if child.tag == tag]

    def child_value(self, tag: str) -> str | None:
        """Value of the first sub-record with the given tag, or None."""
        child = self.first(tag)
        if child is None:
            return None
        return child.value


class GedcomFile(BaseModel):
    """Top-level parse result, bucketed by record kind."""
    model_config = ConfigDict(frozen=True)

    header: ParsedRecord | None = None
    trailer: ParsedRecord | None = None
    individuals: list[ParsedRecord] = Field(default_factory=list)
    families: list[ParsedRecord] = Field(default_factory=list)
    other_records: list[ParsedRecord] = Field(default_factory=list)
    version: Literal["5.5.1", "7.0"] = "5.5.1"
    charset: str = "UTF-8"
    parse_warnings: list[str] = Field(default_factory=list)


# ============================================================================
# People and relationships
# ============================================================================

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        # Stored rows often carry upper-case values ("MALE").
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class Person(BaseModel):
    """A person as stored by the rest of the system."""
    id: str
    first_name: str = ""
    last_name: str = ""
    gender: Gender = Gender.UNKNOWN
    date_of_birth: date | None = None
    date_of_passing: date | None = None
    is_living: bool = True
    birth_place: str | None = None
    death_place: str | None = None
    profession: str | None = None
    bio: str | None = None

    @model_validator(mode="after")
    def _passing_implies_deceased(self) -> "Person":
        if self.date_of_passing is not None and self.is_living:
            self.is_living = False
        return self

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class RelationshipType(str, Enum):
    PARENT = "PARENT"
    SPOUSE = "SPOUSE"
    SIBLING = "SIBLING"


RELATIONSHIP_TYPES = frozenset(kind.value for kind in RelationshipType)


class _RelationshipBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    person_id: str
    related_person_id: str


class ParentRelationship(_RelationshipBase):
    """Child-to-parent link: ``person_id`` is the child, ``related_person_id`` the parent."""
    type: Literal["PARENT"] = "PARENT"

    @property
    def child_id(self) -> str:
        return self.person_id

    @property
    def parent_id(self) -> str:
        return self.related_person_id


class SpouseRelationship(_RelationshipBase):
    """Symmetric partnership; the order of the two ids carries no meaning."""
    type: Literal["SPOUSE"] = "SPOUSE"
    marriage_date: date | None = None
    divorce_date: date | None = None

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.person_id, self.related_person_id))


class SiblingRelationship(_RelationshipBase):
    type: Literal["SIBLING"] = "SIBLING"


Relationship = Annotated[
    Union[ParentRelationship, SpouseRelationship, SiblingRelationship],
    Field(discriminator="type"),
]

relationship_adapter: TypeAdapter[Relationship] = TypeAdapter(Relationship)

_CAMEL_RELATIONSHIP_KEYS = {
    "personId": "person_id",
    "relatedPersonId": "related_person_id",
    "marriageDate": "marriage_date",
    "divorceDate": "divorce_date",
}


def normalize_relationship_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """
    Copy of a stored relationship row with snake_case keys and an upper-case type.

    Rows may come from JSON with camelCase keys and lower-case types. A
    snake_case key wins when both spellings are present.
    """
    normalized: dict[str, Any] = {}
    for key, value in row.items():
        target = _CAMEL_RELATIONSHIP_KEYS.get(key, key)
        if target != key and target in row:
            continue
        normalized[target] = value
    kind = normalized.get("type")
    if kind is not None:
        normalized["type"] = str(getattr(kind, "value", kind)).upper()
    return normalized


# ============================================================================
# Mapping and validation results
# ============================================================================

class MappingErrorType(str, Enum):
    BROKEN_REFERENCE = "broken_reference"
    INVALID_FORMAT = "invalid_format"
    INVALID_DATE = "invalid_date"
    MISSING_DATA = "missing_data"


class MappingError(BaseModel):
    message: str
    type: MappingErrorType
    source: Literal["INDI", "FAM"] | None = None
    record_id: str | None = None
    field: str | None = None


class MappingResult(BaseModel):
    """Everything produced by one call to the mapper."""
    model_config = ConfigDict(frozen=True)

    people: list[Person] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[MappingError] = Field(default_factory=list)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    message: str
    severity: Severity
    record_id: str | None = None


class GeneratorOptions(BaseModel):
    """Header values and formatting limits used when exporting."""
    source_program: str = Field(default="treecore", description="Program name written to HEAD.SOUR.")
    source_version: str = "1.0"
    submitter_name: str = Field(default="treecore user", description="Name written to the SUBM record.")
    max_line_length: int = Field(default=80, ge=20)
    export_date: date | None = Field(
        default=None,
        description="Date written to HEAD.DATE; today when not given.",
    )
