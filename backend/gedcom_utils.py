"""GEDCOM import/export service helpers built on the lineage core."""

import io
import logging
from datetime import date
from typing import Any, Iterable, Literal

from gedcom.element.family import FamilyElement
from gedcom.element.individual import IndividualElement
from gedcom.parser import GedcomFormatViolationError, Parser
from pydantic import BaseModel, Field

from config import default_generator_options
from lineage.encoding import is_ansel
from lineage.errors import FormatError
from lineage.generator import generate
from lineage.mapper import map_from_gedcom
from lineage.models import (
    GedcomFile,
    GeneratorOptions,
    MappingErrorType,
    MappingResult,
    Person,
    Severity,
    SpouseRelationship,
)
from lineage.parser import parse
from lineage.validator import has_errors, validate

logger = logging.getLogger("treecore.gedcom_utils")

GEDCOM_EXTENSIONS = (".ged", ".gedcom")
CRITICAL_MAPPING_ERRORS = (MappingErrorType.BROKEN_REFERENCE, MappingErrorType.INVALID_FORMAT)


# ============================================================================
# Result Models
# ============================================================================

class StructureError(BaseModel):
    """One problem reported to whoever reviews an import."""
    message: str
    type: Literal["validation_error", "validation_warning", "mapping_error"]


class ImportPreview(BaseModel):
    people_count: int = 0
    families_count: int = 0
    errors: list[StructureError] = Field(default_factory=list)


class GedcomValidationResult(BaseModel):
    valid: bool
    errors: list[StructureError] = Field(default_factory=list)
    preview: ImportPreview | None = None


class ImportCheck(BaseModel):
    """Outcome of the upload-time check: a verdict, a message and a preview when parsing worked."""
    valid: bool
    message: str
    preview: ImportPreview | None = None


class GedcomStatistics(BaseModel):
    people_count: int
    relationship_count: int
    spousal_relationships: int
    warning_count: int
    error_count: int


# ============================================================================
# Parsing
# ============================================================================

def parse_gedcom_content(content: str) -> GedcomFile:
    """Parse GEDCOM text. Raises FormatError when the text is not GEDCOM at all."""
    return parse(content)


def parse_gedcom_file(file_path: str) -> GedcomFile:
    """
    Read and parse a GEDCOM file.

    ANSEL files (``1 CHAR ANSEL``) are read byte for byte and transcoded by
    the parser; anything else is UTF-8, falling back to latin-1.
    """
    with open(file_path, "rb") as f:
        raw = f.read()
    byte_text = raw.decode("latin-1")
    if is_ansel(byte_text):
        logger.info(f"{file_path} declares ANSEL; transcoding to Unicode")
        return parse(byte_text)
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning(f"{file_path} is not valid UTF-8; decoding as latin-1")
        content = raw.decode("latin-1")
    return parse(content)


# ============================================================================
# Validation
# ============================================================================

def validate_gedcom_structure(gedcom_file: GedcomFile) -> GedcomValidationResult:
    """
    Full structural check for operator review.

    Reports every validator issue (errors and warnings) followed by every
    mapping error, along with a preview of what an import would create.
    ``valid`` only reflects error-severity validator issues.
    """
    issues = validate(gedcom_file)
    mapped = map_from_gedcom(gedcom_file)

    errors = [
        StructureError(
            message=issue.message,
            type="validation_error" if issue.severity == Severity.ERROR else "validation_warning",
        )
        for issue in issues
    ]
    errors.extend(StructureError(message=error.message, type="mapping_error") for error in mapped.errors)

    return GedcomValidationResult(
        valid=not has_errors(issues),
        errors=errors,
        preview=ImportPreview(
            people_count=len(mapped.people),
            families_count=len(gedcom_file.families),
        ),
    )


def validate_gedcom_import_prerequisites(gedcom_file: GedcomFile) -> GedcomValidationResult:
    """
    Strict check run right before an import.

    Returns the validator's errors if there are any, otherwise only the
    mapper's broken-reference and invalid-format errors. Warnings are never
    included, so this never reports more errors than validate_gedcom_structure.
    """
    issues = validate(gedcom_file)
    blocking = [issue for issue in issues if issue.severity == Severity.ERROR]
    if blocking:
        return GedcomValidationResult(
            valid=False,
            errors=[StructureError(message=issue.message, type="validation_error") for issue in blocking],
        )

    mapped = map_from_gedcom(gedcom_file)
    critical = [error for error in mapped.errors if error.type in CRITICAL_MAPPING_ERRORS]
    if critical:
        return GedcomValidationResult(
            valid=False,
            errors=[StructureError(message=error.message, type="mapping_error") for error in critical],
        )

    return GedcomValidationResult(valid=True)


def preview_gedcom_import(file_name: str, content: str) -> ImportCheck:
    """Check an uploaded file before import and summarise what it would create."""
    if not file_name.lower().endswith(GEDCOM_EXTENSIONS):
        logger.warning(f"Rejected upload {file_name!r}: not a .ged file")
        return ImportCheck(valid=False, message="File must be .ged format")

    try:
        gedcom_file = parse(content)
    except FormatError as e:
        logger.error(f"GEDCOM parse failed for {file_name}: {e}")
        return ImportCheck(valid=False, message=str(e))

    prerequisites = validate_gedcom_import_prerequisites(gedcom_file)
    if not prerequisites.valid:
        return ImportCheck(
            valid=False,
            message="File has validation issues",
            preview=ImportPreview(errors=prerequisites.errors),
        )

    mapped = map_from_gedcom(gedcom_file)
    stats = calculate_gedcom_statistics(mapped)
    logger.info(f"Import preview for {file_name}: {stats.people_count} people, {len(gedcom_file.families)} families")
    return ImportCheck(
        valid=True,
        message="File is valid",
        preview=ImportPreview(
            people_count=stats.people_count,
            families_count=stats.spousal_relationships,
            errors=[StructureError(message=error.message, type="mapping_error") for error in mapped.errors],
        ),
    )


# ============================================================================
# Mapping and Export
# ============================================================================

def map_gedcom_to_entities(gedcom_file: GedcomFile) -> MappingResult:
    return map_from_gedcom(gedcom_file)


def generate_gedcom_output(people: list[Person], relationships: Iterable[Any],
                           options: GeneratorOptions | None = None) -> str:
    """Export people and relationships, using environment defaults for the header."""
    return generate(people, relationships, options or default_generator_options())


def format_gedcom_file_name(today: date | None = None) -> str:
    """Export file name, e.g. ``family-tree-2024-03-05.ged``."""
    today = today or date.today()
    return f"family-tree-{today.isoformat()}.ged"


def calculate_gedcom_statistics(mapped: MappingResult) -> GedcomStatistics:
    spousal = sum(1 for relationship in mapped.relationships if isinstance(relationship, SpouseRelationship))
    return GedcomStatistics(
        people_count=len(mapped.people),
        relationship_count=len(mapped.relationships),
        spousal_relationships=spousal,
        warning_count=len(mapped.warnings),
        error_count=len(mapped.errors),
    )


def verify_export_readable(content: str) -> list[str]:
    """
    Re-read exported text with python-gedcom's strict parser.

    Returns a list of problems; an empty list means the file was accepted
    and every individual and family record came back with its pointer.
    """
    parser = Parser()
    try:
        parser.parse(io.BytesIO(content.encode("utf-8-sig")), strict=True)
    except GedcomFormatViolationError as e:
        return [str(e)]

    problems = []
    for element in parser.get_root_child_elements():
        if isinstance(element, (IndividualElement, FamilyElement)) and not element.get_pointer():
            problems.append(f"{element.get_tag()} record without a pointer")
    return problems


# ============================================================================
# Person Lookup
# ============================================================================

def find_person_by_id(people: list[Person], person_id: str) -> Person | None:
    """Find a person by id, accepting GEDCOM-style '@I1@' as well as 'I1'."""
    person_id = person_id.strip().strip("@")
    for person in people:
        if person.id == person_id:
            return person
    return None


def find_person_by_name(people: list[Person], name: str) -> Person | None:
    """Find a person by name (case-insensitive; exact match wins over partial)."""
    name_lower = " ".join(name.lower().split())
    if not name_lower:
        return None

    partial = None
    for person in people:
        full_name = person.full_name.lower()
        if full_name == name_lower:
            return person
        if partial is None and name_lower in full_name:
            partial = person
    return partial


def find_person(people: list[Person], identifier: str) -> Person | None:
    """
    Find a person by ID or name.
    First tries the id (e.g. '@I1@' or 'I1'), then falls back to name search.
    """
    identifier = identifier.strip()
    if not identifier:
        return None
    return find_person_by_id(people, identifier) or find_person_by_name(people, identifier)
