"""Free-text pattern extraction: weekdays, repeat intervals, dose quantities.

All lexicons are data tables (token -> meaning) so a new locale or phrasing is
a table entry, not a new branch. Text is folded (case + diacritics) before
matching, so the tables hold unaccented lower-case forms only.

Nothing here raises on unrecognized input: the extractors return None (or a
DoseQuantity with unknown parts) and callers treat that as "no restriction".
"""

from __future__ import annotations

import re

from supplan.domains.supplements.domain_logic.canonical import fold_text
from supplan.domains.supplements.domain_logic.models import DoseQuantity, UnitKind

# ---------------------------------------------------------------------------
# Lexicons
# ---------------------------------------------------------------------------

# ISO weekday numbering: Monday=1 .. Sunday=7 (Spanish + English).
WEEKDAY_TOKENS: dict[str, int] = {
    "lun": 1, "lunes": 1, "mon": 1, "monday": 1, "mondays": 1,
    "mar": 2, "martes": 2, "tue": 2, "tues": 2, "tuesday": 2, "tuesdays": 2,
    "mie": 3, "mier": 3, "miercoles": 3, "wed": 3, "weds": 3,
    "wednesday": 3, "wednesdays": 3,
    "jue": 4, "jueves": 4, "thu": 4, "thur": 4, "thurs": 4,
    "thursday": 4, "thursdays": 4,
    "vie": 5, "viernes": 5, "fri": 5, "friday": 5, "fridays": 5,
    "sab": 6, "sabado": 6, "sabados": 6, "sat": 6, "saturday": 6, "saturdays": 6,
    "dom": 7, "domingo": 7, "domingos": 7, "sun": 7, "sunday": 7, "sundays": 7,
}

NUMBER_WORDS: dict[str, int] = {
    "un": 1, "uno": 1, "una": 1, "one": 1,
    "dos": 2, "two": 2,
}

# (pattern, fixed interval). A None interval means "read it from group 1".
INTERVAL_PATTERNS: list[tuple[re.Pattern[str], int | None]] = [
    (re.compile(r"\bevery\s+other\s+day\b"), 2),
    (re.compile(r"\bun\s+dia\s+si\b.*\bun\s+dia\s+no\b"), 2),
    (re.compile(r"\bdia\s+si\W+dia\s+no\b"), 2),
    (re.compile(r"\bday\s+on\W+day\s+off\b"), 2),
    (
        re.compile(r"\b(?:cada|every)\s+(\d+|un|uno|una|one|dos|two)\s+(?:dias?|days?)\b"),
        None,
    ),
    (re.compile(r"\b(?:cada\s+dia|every\s+day|daily|diario|diaria)\b"), 1),
]

CAPSULE_WORDS = frozenset({
    "cap", "caps", "capsula", "capsulas", "capsule", "capsules",
    "tab", "tabs", "tablet", "tablets", "tableta", "tabletas",
    "comprimido", "comprimidos", "softgel", "softgels", "perla", "perlas",
})
GRAM_WORDS = frozenset({"g", "gr", "grs", "gramo", "gramos", "gram", "grams"})
MILLIGRAM_WORDS = frozenset({"mg", "miligramo", "miligramos", "milligram", "milligrams"})

VULGAR_FRACTIONS: dict[str, float] = {
    "½": 0.5, "¼": 0.25, "¾": 0.75, "⅓": 1 / 3, "⅔": 2 / 3,
}

_WORD = re.compile(r"[a-z]+")
_DECIMAL_COMMA = re.compile(r"(\d),(\d)")
_VULGAR = re.compile(r"(\d+)?\s*([" + "".join(VULGAR_FRACTIONS) + r"])")
_FRACTION = re.compile(r"(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)")
_RANGE = re.compile(r"(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def _fold_parts(parts: tuple[object, ...]) -> str:
    return fold_text(" ".join(str(p) for p in parts if p))


# ---------------------------------------------------------------------------
# Weekdays
# ---------------------------------------------------------------------------

def extract_weekdays(*parts: object) -> set[int] | None:
    """Weekdays named anywhere in the given fragments.

    ``extract_weekdays("Lun/Mié/Vie")`` -> ``{1, 3, 5}``. Matches from every
    fragment are unioned. Returns None when no weekday is named, meaning the
    item is a candidate on every day.
    """
    found = {WEEKDAY_TOKENS[t] for t in _WORD.findall(_fold_parts(parts)) if t in WEEKDAY_TOKENS}
    return found or None


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------

def extract_interval_days(*parts: object) -> int | None:
    """Repeat interval in days from "cada 3 días" / "every other day" phrasing.

    Returns None when absent. A result of 1 means every day, which callers
    treat the same as no interval.
    """
    text = _fold_parts(parts)
    if not text:
        return None
    for pattern, fixed in INTERVAL_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        if fixed is not None:
            return fixed
        token = match.group(1)
        interval = int(token) if token.isdigit() else NUMBER_WORDS[token]
        if interval > 0:
            return interval
    return None


# ---------------------------------------------------------------------------
# Dose quantities
# ---------------------------------------------------------------------------

def parse_number(text: str) -> float | None:
    """First quantity in already-folded text.

    Precedence: vulgar fraction (optionally after a whole number), ``a/b``,
    ``a-b`` range (mean), plain decimal. Decimal commas are accepted.
    """
    text = _DECIMAL_COMMA.sub(r"\1.\2", text)

    vulgar = _VULGAR.search(text)
    if vulgar:
        whole = float(vulgar.group(1)) if vulgar.group(1) else 0.0
        return whole + VULGAR_FRACTIONS[vulgar.group(2)]

    fraction = _FRACTION.search(text)
    if fraction:
        denominator = float(fraction.group(2))
        if denominator != 0:
            return float(fraction.group(1)) / denominator

    span = _RANGE.search(text)
    if span:
        return (float(span.group(1)) + float(span.group(2))) / 2

    number = _NUMBER.search(text)
    return float(number.group(0)) if number else None


def parse_dose_quantity(
    text: object,
    preferred_unit: UnitKind | str | None = None,
) -> DoseQuantity:
    """Parse a dose annotation into a quantity and unit.

    Milligrams are reported as grams. With a ``preferred_unit`` the parser
    only returns a quantity in that unit; capsule wording without a number
    means one capsule. Unparseable text gives ``value=None`` rather than an
    error.
    """
    folded = fold_text(text)
    words = set(_WORD.findall(folded))
    has_caps = not words.isdisjoint(CAPSULE_WORDS)
    has_mg = not words.isdisjoint(MILLIGRAM_WORDS)
    has_grams = not words.isdisjoint(GRAM_WORDS)
    number = parse_number(folded)

    if isinstance(preferred_unit, str):
        preferred_unit = UnitKind.parse(preferred_unit)

    if preferred_unit is UnitKind.CAPS:
        if number is not None:
            return DoseQuantity(number, UnitKind.CAPS)
        return DoseQuantity(1.0 if has_caps else None, UnitKind.CAPS)

    if preferred_unit is UnitKind.GRAMS:
        if number is None:
            return DoseQuantity(None, UnitKind.GRAMS)
        if has_grams:
            return DoseQuantity(number, UnitKind.GRAMS)
        if has_mg:
            return DoseQuantity(number / 1000, UnitKind.GRAMS)
        if not has_caps:
            return DoseQuantity(number, UnitKind.GRAMS)
        return DoseQuantity(None, UnitKind.GRAMS)

    if has_caps:
        return DoseQuantity(number if number is not None else 1.0, UnitKind.CAPS)
    if has_mg and not has_grams:
        return DoseQuantity(number / 1000 if number is not None else None, UnitKind.GRAMS)
    if has_grams:
        return DoseQuantity(number, UnitKind.GRAMS)
    return DoseQuantity(number, None)
