import math
import re
from datetime import date
from typing import Any

# ---------- COLUMN TYPES ----------

TEXT = "text"
NUMBER = "number"
DATE = "date"
BOOLEAN = "boolean"
SELECT = "select"
EMAIL = "email"
PHONE = "phone"
URL = "url"
FILE = "file"

COLUMN_TYPES = (TEXT, NUMBER, DATE, BOOLEAN, SELECT, EMAIL, PHONE, URL, FILE)

_TRUTHY = {"1", "true", "yes", "on"}
_NUMERIC_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def today_iso() -> str:
    return date.today().isoformat()


# ---------- COERCION ----------

def to_number(value: Any) -> float | None:
    """Leading numeric prefix of the value (`"12abc"` -> 12.0); None when there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        if match is None:
            return None
        value = match.group(0)
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def to_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def default_value(column_type: str) -> Any:
    if column_type == BOOLEAN:
        return False
    if column_type == DATE:
        return today_iso()
    if column_type == NUMBER:
        return 0.0
    if column_type == FILE:
        return None
    return ""


def decode(column, raw: Any) -> Any:
    """
    Coerce a raw cell value for `column`. Never raises:
    numbers fall back to 0, booleans to False, everything else passes through.
    """
    column_type = column.type
    if column_type == NUMBER:
        num = to_number(raw)
        return 0.0 if num is None else num
    if column_type == BOOLEAN:
        return to_boolean(raw)
    return raw


# ---------- DISPLAY ----------

def file_name(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("name") or "")
    return "" if value is None else str(value)


def format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def display_value(column_type: str, value: Any) -> str:
    """String form used by search, substring filters and tabular export."""
    if value is None:
        return ""
    if column_type == FILE:
        return file_name(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value):
        return format_number(value)
    return str(value)


# ---------- ORDERING ----------

def _sort_key(value: Any, column_type: str):
    if column_type == NUMBER:
        num = to_number(value)
        return 0.0 if num is None else num
    if column_type == BOOLEAN:
        return to_boolean(value)
    if column_type == FILE:
        return file_name(value)
    return "" if value is None else str(value)


def compare(a: Any, b: Any, column_type: str) -> int:
    left = _sort_key(a, column_type)
    right = _sort_key(b, column_type)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0
