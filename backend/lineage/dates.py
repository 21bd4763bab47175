"""GEDCOM date parsing and formatting.

Handles the 5.5.1 forms ("15 JAN 1985", "JAN 1985", "1985", "ABT 1985",
"BET 1975 AND 1985") and the 7.0 ISO forms ("1985-01-15", "1985-01").
Only an exact day/month/year yields a calendar date; everything else is
classified so callers can warn instead of guessing.
"""

import re
from datetime import date
from enum import Enum

from pydantic import BaseModel


MONTHS = {
    "JAN": 1, "JANUARY": 1,
    "FEB": 2, "FEBRUARY": 2,
    "MAR": 3, "MARCH": 3,
    "APR": 4, "APRIL": 4,
    "MAY": 5,
    "JUN": 6, "JUNE": 6,
    "JUL": 7, "JULY": 7,
    "AUG": 8, "AUGUST": 8,
    "SEP": 9, "SEPT": 9, "SEPTEMBER": 9,
    "OCT": 10, "OCTOBER": 10,
    "NOV": 11, "NOVEMBER": 11,
    "DEC": 12, "DECEMBER": 12,
}

MONTH_ABBREVIATIONS = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN",
                       "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]

QUALIFIERS = ("ABT", "CAL", "EST", "BEF", "AFT", "BET", "FROM", "TO", "INT")

_ISO_RE = re.compile(r"^(\d{4})(?:-(\d{2})(?:-(\d{2}))?)?$")
_DAY_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})\s+([A-Z]+)\.?\s+(\d{3,4})$")
_MONTH_YEAR_RE = re.compile(r"^([A-Z]+)\.?\s+(\d{3,4})$")
_YEAR_RE = re.compile(r"^(\d{3,4})$")
_CALENDAR_ESCAPE_RE = re.compile(r"^@#D([A-Z ]+)@\s*")


class DatePrecision(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    APPROXIMATE = "approximate"
    INVALID = "invalid"


class ParsedDate(BaseModel):
    raw: str
    precision: DatePrecision
    year: int | None = None
    month: int | None = None
    day: int | None = None
    qualifier: str | None = None
    value: date | None = None


def _components(text: str) -> tuple[int | None, int | None, int | None]:
    """Split a single (unqualified) date phrase into year, month and day."""
    match = _DAY_MONTH_YEAR_RE.match(text)
    if match:
        month = MONTHS.get(match.group(2))
        if month is None:
            return None, None, None
        return int(match.group(3)), month, int(match.group(1))

    match = _MONTH_YEAR_RE.match(text)
    if match:
        month = MONTHS.get(match.group(1))
        if month is None:
            return None, None, None
        return int(match.group(2)), month, None

    match = _YEAR_RE.match(text)
    if match:
        return int(match.group(1)), None, None

    return None, None, None


def _exact(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_gedcom_date(raw: str | None) -> ParsedDate | None:
    """
    Classify a GEDCOM DATE value.

    Returns None for an empty value. An EXACT result always carries
    ``value``; PARTIAL and APPROXIMATE results carry whatever year/month/day
    could be read; INVALID results carry nothing but ``raw``.
    """
    if raw is None or not raw.strip():
        return None

    text = raw.strip().upper()
    approximate = False

    escape = _CALENDAR_ESCAPE_RE.match(text)
    if escape:
        # Only the Gregorian calendar maps onto calendar dates
        if escape.group(1).strip() != "GREGORIAN":
            approximate = True
        text = text[escape.end():].strip()

    iso = _ISO_RE.match(text)
    if iso:
        year = int(iso.group(1))
        month = int(iso.group(2)) if iso.group(2) else None
        day = int(iso.group(3)) if iso.group(3) else None
        if month is not None and not 1 <= month <= 12:
            return ParsedDate(raw=raw, precision=DatePrecision.INVALID)
        if day is not None:
            value = _exact(year, month, day)
            if value is None:
                return ParsedDate(raw=raw, precision=DatePrecision.INVALID)
            if not approximate:
                return ParsedDate(raw=raw, precision=DatePrecision.EXACT,
                                  year=year, month=month, day=day, value=value)
        precision = DatePrecision.APPROXIMATE if approximate else DatePrecision.PARTIAL
        return ParsedDate(raw=raw, precision=precision, year=year, month=month, day=day)

    qualifier = None
    first_word = text.split(" ", 1)[0].rstrip(".")
    if first_word in QUALIFIERS:
        qualifier = first_word
        text = text[len(text.split(" ", 1)[0]):].strip()
        # Ranges: keep the first bound
        for separator in (" AND ", " TO "):
            if separator in text:
                text = text.split(separator, 1)[0].strip()
        approximate = True

    if text.startswith("(") and text.endswith(")"):
        return ParsedDate(raw=raw, precision=DatePrecision.INVALID, qualifier=qualifier)

    year, month, day = _components(text)
    if year is None:
        return ParsedDate(raw=raw, precision=DatePrecision.INVALID, qualifier=qualifier)

    if day is not None:
        value = _exact(year, month, day)
        if value is None:
            return ParsedDate(raw=raw, precision=DatePrecision.INVALID, qualifier=qualifier)
        if not approximate:
            return ParsedDate(raw=raw, precision=DatePrecision.EXACT,
                              year=year, month=month, day=day, value=value)

    precision = DatePrecision.APPROXIMATE if approximate else DatePrecision.PARTIAL
    return ParsedDate(raw=raw, precision=precision, year=year, month=month,
                      day=day, qualifier=qualifier)


def format_gedcom_date(value: date) -> str:
    """Format a calendar date the 5.5.1 way, e.g. ``15 JAN 1985``."""
    return f"{value.day} {MONTH_ABBREVIATIONS[value.month - 1]} {value.year:04d}"
