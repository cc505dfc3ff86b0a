"""
Text utilities for handling French text with accents.

Used for department matching and stable name sorting.
"""

import unicodedata
from typing import Any


def strip_accents(text: str) -> str:
    """
    Remove diacritics while keeping base characters.

    - "Pâtisserie" → "Patisserie"
    - "Crème brûlée" → "Creme brulee"
    """
    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize("NFD", text)

    # Remove accent marks (combining characters in Unicode category 'Mn')
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


def fold(value: Any) -> str:
    """
    Lower-case, accent-free, trimmed form of any value.

    None becomes an empty string. Used as a comparison / sort key.
    """
    if value is None:
        return ""
    return strip_accents(str(value)).strip().lower()
