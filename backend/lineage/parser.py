"""GEDCOM 5.5.1 / 7.0 line-record parser.

Each line is ``<level> [@xref@] <tag> [<value>]``. Lines are tokenized one at
a time and attached to the record tree through an explicit stack of open
records indexed by level, so parsing stays linear in the input size.
"""

import logging

from .encoding import is_ansel, transcode_ansel_text
from .errors import FormatError
from .models import GedcomFile, ParsedRecord

logger = logging.getLogger("treecore.lineage.parser")

CONTINUATION_TAGS = ("CONT", "CONC")


def _is_tag_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def tokenize_line(line: str, line_number: int) -> ParsedRecord | None:
    """
    Tokenize one line into a childless ParsedRecord.

    Returns None for blank lines and lines that do not start with a level,
    which callers skip. Raises FormatError when a level is present but the
    rest of the line cannot be read as an optional xref plus a tag.
    """
    text = line.strip()
    if not text or not text[0].isdigit():
        return None

    i = 0
    while i < len(text) and text[i].isdigit():
        i += 1
    level = int(text[:i])

    while i < len(text) and text[i] in " \t":
        i += 1
    if i >= len(text):
        raise FormatError(f"missing tag after level {level}", line_number)

    xref = None
    if text[i] == "@":
        end = text.find("@", i + 1)
        if end == -1:
            raise FormatError(f"unterminated cross-reference in {text!r}", line_number)
        xref = text[i + 1:end]
        i = end + 1
        while i < len(text) and text[i] in " \t":
            i += 1

    tag_start = i
    while i < len(text) and _is_tag_char(text[i]):
        i += 1
    if i == tag_start:
        raise FormatError(f"missing tag in {text!r}", line_number)
    tag = text[tag_start:i].upper()

    if i < len(text) and text[i] not in " \t":
        raise FormatError(f"malformed tag in {text!r}", line_number)

    # A single delimiter separates tag and value
    value = text[i + 1:] if i < len(text) else ""

    return ParsedRecord(
        level=level,
        tag=tag,
        xref=xref or None,
        value=value or None,
        line_number=line_number,
    )


def _append_continuation(target: ParsedRecord, line: ParsedRecord) -> None:
    addition = line.value or ""
    if line.tag == "CONT":
        target.value = f"{target.value or ''}\n{addition}"
    else:
        target.value = f"{target.value or ''}{addition}"


def _header_version(header: ParsedRecord) -> str:
    gedc = header.first("GEDC")
    version = gedc.child_value("VERS") if gedc else None
    if version and version.strip().startswith("7"):
        return "7.0"
    return "5.5.1"


def parse(text: str) -> GedcomFile:
    """
    Parse GEDCOM text into a GedcomFile.

    Raises FormatError for input that cannot be tokenized at all: a line
    with a level but no tag, no records, or a missing HEAD/TRLR record.
    Everything less severe is recorded in ``parse_warnings``.

    Files declaring ``1 CHAR ANSEL`` are expected as one character per byte
    (latin-1 decoded) and are transcoded to Unicode first.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    if is_ansel(text):
        text = transcode_ansel_text(text)

    warnings: list[str] = []
    top_level: list[ParsedRecord] = []
    stack: list[ParsedRecord] = []

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        if not raw_line.strip():
            continue

        record = tokenize_line(raw_line, line_number)
        if record is None:
            warnings.append(f"Line {line_number}: skipped unrecognized content {raw_line.strip()[:40]!r}")
            continue

        if record.level == 0:
            if record.tag in CONTINUATION_TAGS:
                warnings.append(f"Line {line_number}: {record.tag} at level 0 ignored")
                continue
            top_level.append(record)
            stack = [record]
            continue

        if not stack:
            warnings.append(f"Line {line_number}: {record.tag} before the first record ignored")
            continue

        level = record.level
        if level > len(stack):
            warnings.append(
                f"Line {line_number}: level jumps from {len(stack) - 1} to {level}; "
                f"treated as level {len(stack)}"
            )
            level = len(stack)
            record.level = level

        if record.tag in CONTINUATION_TAGS:
            _append_continuation(stack[level - 1], record)
            continue

        parent = stack[level - 1]
        parent.children.append(record)
        del stack[level:]
        stack.append(record)

    if not top_level:
        raise FormatError("no GEDCOM records found")

    header = None
    trailer = None
    individuals: list[ParsedRecord] = []
    families: list[ParsedRecord] = []
    other_records: list[ParsedRecord] = []

    for record in top_level:
        if record.tag == "HEAD" and header is None:
            header = record
        elif record.tag == "TRLR":
            trailer = record
        elif record.tag == "INDI":
            individuals.append(record)
        elif record.tag == "FAM":
            families.append(record)
        else:
            other_records.append(record)

    if header is None:
        raise FormatError("missing required HEAD record")
    if trailer is None:
        raise FormatError("missing required TRLR record")

    version = _header_version(header)
    charset = (header.child_value("CHAR") or "UTF-8").strip()

    logger.debug(
        f"Parsed {len(individuals)} individuals and {len(families)} families "
        f"(GEDCOM {version}, {len(warnings)} warnings)"
    )

    return GedcomFile(
        header=header,
        trailer=trailer,
        individuals=individuals,
        families=families,
        other_records=other_records,
        version=version,
        charset=charset,
        parse_warnings=warnings,
    )
