# ==============================
# Cell Value Helpers
# ==============================
"""
Shared interpretation of untyped cell values.

Every operation that needs a number (sort, lookup, statistics) goes through
is_numeric/to_number so the numeric test is identical everywhere.

No side effects.
"""

from __future__ import annotations

import math
import re
import unicodedata
from typing import Any, List, Optional

_NUMERIC_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def is_numeric(value: Any) -> bool:
    """
    True for finite decimal numbers, written as strings or given as int/float.

    Blank strings, nan/inf spellings and booleans are not numeric.
    """
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        # "1e400" matches the pattern but overflows to inf
        return bool(_NUMERIC_RE.match(value)) and math.isfinite(float(value))
    return False


def to_number(value: Any) -> float:
    """Convert a value that passed is_numeric. Raises ValueError otherwise."""
    if not is_numeric(value):
        raise ValueError(f"not a number: {value!r}")
    return float(value)


def stringify(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def fold(value: Any) -> str:
    return stringify(value).casefold()


def strip_accents(value: Any) -> str:
    """Case-folded text with combining marks removed ("Éclair" -> "eclair")."""
    decomposed = unicodedata.normalize("NFKD", fold(value))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def parse_column_list(value: Any) -> List[str]:
    """
    Accept "a, b,,c" or ["a", " b", ""] and return ["a", "b", "c"].
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = [str(p) for p in value if p is not None]
    else:
        parts = [str(value)]
    return [p.strip() for p in parts if p.strip()]


def parse_int(value: Any) -> Optional[int]:
    """Leading-integer parse ("12abc" -> 12). None when nothing parses."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    m = _LEADING_INT_RE.match(str(value))
    return int(m.group(1)) if m else None


def parse_positive_int(value: Any, default: int) -> int:
    """Parse, fall back to default when unparseable, clamp to >= 1."""
    parsed = parse_int(value)
    if parsed is None:
        parsed = default
    return max(1, parsed)


def round_half_up(value: float, places: int = 2) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor
