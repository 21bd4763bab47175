"""Structural and referential checks over a parsed GEDCOM file."""

import logging

from .models import GedcomFile, Severity, ValidationIssue

logger = logging.getLogger("treecore.lineage.validator")

KNOWN_SEX_VALUES = ("M", "F", "U", "X")
NULL_POINTER = "VOID"


def validate(file: GedcomFile) -> list[ValidationIssue]:
    """
    Check a parsed file for broken references and missing structure.

    Broken family member references and duplicate ids are errors; everything
    else is a warning. All issues are collected in a single pass.
    """
    issues: list[ValidationIssue] = []

    def error(message: str, record_id: str | None = None) -> None:
        issues.append(ValidationIssue(message=message, severity=Severity.ERROR, record_id=record_id))

    def warning(message: str, record_id: str | None = None) -> None:
        issues.append(ValidationIssue(message=message, severity=Severity.WARNING, record_id=record_id))

    for message in file.parse_warnings:
        warning(message)

    # Duplicate ids across every top-level record
    seen_ids: set[str] = set()
    for record in [*file.individuals, *file.families, *file.other_records]:
        if not record.xref:
            continue
        if record.xref in seen_ids:
            error(f"Duplicate xref: @{record.xref}@", record.xref)
        seen_ids.add(record.xref)

    person_ids = {record.xref for record in file.individuals if record.xref}
    family_ids = {record.xref for record in file.families if record.xref}

    for family in file.families:
        family_id = family.xref
        if not family_id:
            warning(f"Family record on line {family.line_number} has no xref id")
            family_id = f"line {family.line_number}"

        members = 0
        for tag in ("HUSB", "WIFE", "CHIL"):
            for link in family.all(tag):
                pointer = link.pointer
                if pointer is None or pointer == NULL_POINTER:
                    continue
                members += 1
                if pointer not in person_ids:
                    error(
                        f"Broken reference in family {family_id}: {tag} @{pointer}@ not found",
                        family.xref,
                    )
        if members == 0:
            warning(f"Family {family_id} has no members", family.xref)

    for individual in file.individuals:
        person_id = individual.xref
        if not person_id:
            warning(f"Individual record on line {individual.line_number} has no xref id")
            person_id = f"line {individual.line_number}"

        if individual.first("NAME") is None:
            warning(f"Individual {person_id} has no NAME record", individual.xref)

        sex = individual.child_value("SEX")
        if sex is not None and sex.strip().upper() not in KNOWN_SEX_VALUES:
            warning(f"Individual {person_id} has unrecognized SEX value {sex!r}", individual.xref)

        for tag in ("FAMC", "FAMS"):
            for link in individual.all(tag):
                pointer = link.pointer
                if pointer and pointer != NULL_POINTER and pointer not in family_ids:
                    warning(
                        f"Broken reference in person {person_id}: {tag} @{pointer}@ not found",
                        individual.xref,
                    )

    error_count = sum(1 for issue in issues if issue.severity == Severity.ERROR)
    logger.debug(f"Validation found {error_count} errors and {len(issues) - error_count} warnings")
    return issues


def has_errors(issues: list[ValidationIssue]) -> bool:
    return any(issue.severity == Severity.ERROR for issue in issues)
