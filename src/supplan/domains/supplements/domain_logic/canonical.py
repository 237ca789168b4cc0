"""Identity and ordering keys derived from free-text names.

The canonical key is what joins routine entries, cycle configs, price configs
and completion lookups, so it must be stable across accents, trademark glyphs,
case and punctuation.
"""

from __future__ import annotations

import re
import unicodedata

_TRADEMARK_GLYPHS = str.maketrans("", "", "®™©℠℗")
_NON_ALNUM = re.compile(r"[\W_]+")

# Substring of the folded moment label -> rank. First matching entry wins, so
# longer phrases that contain a shorter one ("antes de cenar" / "cena") come first.
MOMENT_RANKS: list[tuple[str, int]] = [
    ("al levantar", 0),
    ("upon waking", 0),
    ("a primera hora", 1),
    ("ayunas", 1),
    ("fasting", 1),
    ("post entren", 2),
    ("post workout", 2),
    ("antes de desayun", 3),
    ("before breakfast", 3),
    ("desayuno", 4),
    ("breakfast", 4),
    ("media manana", 5),
    ("mid morning", 5),
    ("antes de comer", 6),
    ("before lunch", 6),
    ("comida", 7),
    ("almuerzo", 7),
    ("lunch", 7),
    ("merienda", 8),
    ("snack", 8),
    ("antes de cenar", 9),
    ("before dinner", 9),
    ("cena", 10),
    ("dinner", 10),
    ("antes de dormir", 11),
    ("bedtime", 11),
    ("noche", 11),
    ("night", 11),
]

UNRANKED_MOMENT = 99


def fold_text(text: object) -> str:
    """Case-fold and strip diacritics (``Miércoles`` -> ``miercoles``)."""
    decomposed = unicodedata.normalize("NFD", str(text or "").casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def canonicalize(name: object) -> str:
    """Normalize an item display name into its identity key.

    ``"Ashwagandha® KSM-66"`` -> ``"ashwagandha ksm 66"``. Idempotent.
    """
    folded = fold_text(name).translate(_TRADEMARK_GLYPHS)
    return " ".join(_NON_ALNUM.sub(" ", folded).split())


def moment_rank(moment: object) -> int:
    """Display rank of a time-of-day label; unknown moments sort last."""
    folded = " ".join(_NON_ALNUM.sub(" ", fold_text(moment)).split())
    for phrase, rank in MOMENT_RANKS:
        if phrase in folded:
            return rank
    return UNRANKED_MOMENT
