"""
Lenient coercion of LLM JSON values into typed fields.

Models return numbers as 1000000, "1,000,000", "$1,000,000.00" or "1M";
booleans as true / "Yes" / "included"; dates in whatever format the
document printed. Everything unparsable becomes None, never an error.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

# Tried in order; the first match wins
DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
)

_MONEY_SUFFIXES = {"k": 1_000, "m": 1_000_000, "mm": 1_000_000, "b": 1_000_000_000}
_MONEY_RE = re.compile(r"^(-?\d+(?:\.\d+)?)\s*(k|m|mm|b)?$", re.IGNORECASE)
_ISO_DATETIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")

_TRUE_STRINGS  = {"true", "yes", "y", "included", "covered", "1"}
_FALSE_STRINGS = {"false", "no", "n", "excluded", "not covered", "0"}


def to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "n/a"):
        return None
    return text


def to_money(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower().replace("$", "").replace(",", "").replace(" ", "")
    if not text:
        return None
    match = _MONEY_RE.match(text)
    if not match:
        return None
    amount = float(match.group(1))
    suffix = match.group(2)
    return amount * _MONEY_SUFFIXES[suffix] if suffix else amount


def to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def to_int(value: Any) -> int | None:
    amount = to_money(value)
    return int(amount) if amount is not None else None


def to_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None

    iso = _ISO_DATETIME_RE.match(text)
    if iso:
        text = iso.group(1)

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def to_list(value: Any, split_commas: bool = False) -> list[Any]:
    """
    List-valued field: a bare string becomes a one-element list (or is
    split on commas), anything else that is not a list or tuple is dropped.
    """
    if isinstance(value, str):
        parts = value.split(",") if split_commas else [value]
        return [p.strip() for p in parts if p.strip()]
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def to_confidence(value: Any, default: float = 0.5) -> float:
    amount = to_money(value)
    if amount is None:
        return default
    return min(1.0, max(0.0, amount))
