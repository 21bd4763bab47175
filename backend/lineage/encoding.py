"""
ANSEL (ANSI Z39.47) support for GEDCOM 5.5.1 files declaring ``1 CHAR ANSEL``.

ANSEL is an 8-bit set: ASCII below 0x80, spacing letters and symbols in
0xA1-0xCF, and combining diacritics in 0xE0-0xFE. A combining byte comes
BEFORE the letter it modifies, the reverse of Unicode, so marks are held
until their base arrives and the result is NFC-normalised.

Tables map ANSEL bytes to Unicode code points.
"""

import logging
import re
import unicodedata

logger = logging.getLogger("treecore.lineage.encoding")

_CHAR_RE = re.compile(r"^\s*1\s+CHAR\s+(\S+)", re.MULTILINE)

ANSEL_SPACING: dict[int, int] = {
    0xA1: 0x0141,  # L with stroke
    0xA2: 0x00D8,  # O with stroke
    0xA3: 0x0110,  # D with stroke
    0xA4: 0x00DE,  # thorn
    0xA5: 0x00C6,  # AE
    0xA6: 0x0152,  # OE
    0xA7: 0x02B9,  # prime
    0xA8: 0x00B7,  # middle dot
    0xA9: 0x266D,  # flat
    0xAA: 0x00AE,  # registered
    0xAB: 0x00B1,  # plus-minus
    0xAC: 0x01A0,  # O with horn
    0xAD: 0x01AF,  # U with horn
    0xAE: 0x02BC,  # alif
    0xB0: 0x02BB,  # ayn
    0xB1: 0x0142,  # l with stroke
    0xB2: 0x00F8,  # o with stroke
    0xB3: 0x0111,  # d with stroke
    0xB4: 0x00FE,  # thorn
    0xB5: 0x00E6,  # ae
    0xB6: 0x0153,  # oe
    0xB7: 0x02BA,  # double prime
    0xB8: 0x0131,  # dotless i
    0xB9: 0x00A3,  # pound
    0xBA: 0x00F0,  # eth
    0xBC: 0x01A1,  # o with horn
    0xBD: 0x01B0,  # u with horn
    0xBE: 0x25A1,  # empty box
    0xBF: 0x25A0,  # black box
    0xC0: 0x00B0,  # degree
    0xC1: 0x2113,  # script l
    0xC2: 0x2117,  # sound recording copyright
    0xC3: 0x00A9,  # copyright
    0xC4: 0x266F,  # sharp
    0xC5: 0x00BF,  # inverted question mark
    0xC6: 0x00A1,  # inverted exclamation mark
    0xC7: 0x00DF,  # eszett
    0xC8: 0x20AC,  # euro
    0xCF: 0x00DF,  # eszett, GEDCOM's code point
}

ANSEL_COMBINING: dict[int, int] = {
    0xE0: 0x0309,  # hook above
    0xE1: 0x0300,  # grave
    0xE2: 0x0301,  # acute
    0xE3: 0x0302,  # circumflex
    0xE4: 0x0303,  # tilde
    0xE5: 0x0304,  # macron
    0xE6: 0x0306,  # breve
    0xE7: 0x0307,  # dot above
    0xE8: 0x0308,  # diaeresis
    0xE9: 0x030C,  # caron
    0xEA: 0x030A,  # ring above
    0xEB: 0xFE20,  # ligature, left half
    0xEC: 0xFE21,  # ligature, right half
    0xED: 0x0315,  # comma above right
    0xEE: 0x030B,  # double acute
    0xEF: 0x0310,  # candrabindu
    0xF0: 0x0327,  # cedilla
    0xF1: 0x0328,  # ogonek
    0xF2: 0x0323,  # dot below
    0xF3: 0x0324,  # double dot below
    0xF4: 0x0325,  # ring below
    0xF5: 0x0333,  # double underscore
    0xF6: 0x0332,  # underscore
    0xF7: 0x0326,  # comma below
    0xF8: 0x031C,  # right cedilla
    0xF9: 0x032E,  # breve below
    0xFA: 0xFE22,  # double tilde, left half
    0xFB: 0xFE23,  # double tilde, right half
    0xFE: 0x0313,  # comma above
}


def declared_charset(text: str) -> str | None:
    """The HEAD ``1 CHAR`` value, upper-cased, or None when there is none."""
    match = _CHAR_RE.search(text)
    return match.group(1).upper() if match else None


def is_ansel(text: str) -> bool:
    charset = declared_charset(text)
    return charset is not None and "ANSEL" in charset


def decode_ansel(raw: bytes) -> str:
    """Decode ANSEL bytes. Unmapped high bytes pass through as latin-1."""
    out: list[str] = []
    pending: list[str] = []
    for byte in raw:
        if byte in ANSEL_COMBINING:
            pending.append(chr(ANSEL_COMBINING[byte]))
            continue
        out.append(chr(ANSEL_SPACING.get(byte, byte)))
        if pending:
            out.extend(pending)
            pending = []
    # Marks with nothing after them are kept as bare combining characters
    out.extend(pending)
    return unicodedata.normalize("NFC", "".join(out))


def transcode_ansel_text(text: str) -> str:
    """
    Re-read text whose bytes were decoded one-to-one (latin-1) as ANSEL.

    Text holding characters above U+00FF was already decoded some other way
    and is returned unchanged.
    """
    try:
        raw = text.encode("latin-1")
    except UnicodeEncodeError:
        logger.warning("CHAR ANSEL declared but text is already decoded; leaving it as-is")
        return text
    return decode_ansel(raw)
