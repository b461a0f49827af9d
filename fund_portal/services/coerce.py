"""
coerce.py – tolerant value parsing and accessor probing

Backend payloads arrive in several historical shapes (snake_case, PascalCase,
camelCase, nested detail objects). Fields are resolved by walking an ordered
list of accessor paths and keeping the first usable value.
"""

import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

Path = Union[str, Sequence[str]]

_AMOUNT_STRIP = re.compile(r"[^0-9.\-]")
_TRUTHY_STRINGS = {"true", "1", "yes", "y"}


def dig(obj: Any, path: Path) -> Any:
    """Follow a dotted path (or key sequence) through nested mappings."""
    keys = path.split(".") if isinstance(path, str) else path
    cur = obj
    for key in keys:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
        if cur is None:
            return None
    return cur


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def first_present(obj: Any, paths: Iterable[Path]) -> Any:
    """First value that is not None/blank along the given paths."""
    for path in paths:
        value = dig(obj, path)
        if not is_blank(value):
            return value
    return None


def first_text(*values: Any) -> Optional[str]:
    """First non-empty string among the candidates, trimmed."""
    for v in values:
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None


def probe_text(obj: Any, paths: Iterable[Path]) -> Optional[str]:
    return first_text(*(dig(obj, p) for p in paths))


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse an amount leniently.

    "1,234.50" -> 1234.5; "", None, "abc" -> None. Returns None rather than 0
    so callers can tell "unknown" from "zero".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
        return num if math.isfinite(num) else None
    if not isinstance(value, str):
        return None
    cleaned = _AMOUNT_STRIP.sub("", value.replace(",", "").strip())
    if cleaned in ("", ".", "-", "-."):
        return None
    try:
        num = float(cleaned)
    except ValueError:
        return None
    return num if math.isfinite(num) else None


def probe_amount(obj: Any, paths: Iterable[Path]) -> Optional[float]:
    for path in paths:
        num = parse_amount(dig(obj, path))
        if num is not None:
            return num
    return None


def to_number(value: Any) -> Optional[int]:
    num = parse_amount(value)
    if num is None:
        return None
    return int(num) if num.is_integer() else None


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return False
