"""
Value Coercion

Lenient parsing of raw cell values into numbers, dates and booleans.
Declared column types are advisory, so every consumer goes through
these helpers and treats a failed parse as an absent value.
"""

import math
import re
from datetime import date, datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo


BOOLEAN_TOKENS = frozenset({"true", "false", "1", "0", "yes", "no"})

# Plain ASCII decimal or exponent notation; no digit separators
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)

# Tried in order after ISO-8601
DATE_FORMATS = (
    "%m/%d/%Y",       # 01/15/2024
    "%d/%m/%Y",       # 15/01/2024
    "%Y/%m/%d",       # 2024/01/15
    "%m-%d-%Y",       # 01-15-2024
    "%d-%m-%Y",       # 15-01-2024
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%B %d, %Y",      # January 15, 2024
    "%b %d, %Y",      # Jan 15, 2024
    "%d %B %Y",       # 15 January 2024
    "%d %b %Y",       # 15 Jan 2024
    "%Y-%m",          # 2024-01
    "%Y",             # 2024
)


def parse_number(value: Any) -> Optional[float]:
    """Return value as a finite float, or None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or not NUMBER_PATTERN.fullmatch(text):
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Map a configured IANA zone name to a tzinfo (None = local time)."""
    return ZoneInfo(name) if name else None


def parse_date(value: Any, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """
    Parse a cell into a naive datetime.

    Aware datetimes are converted to ``tz`` (process local time when
    ``tz`` is None) before the zone is dropped, so bucket keys reflect
    wall-clock time in that zone. Numbers and booleans are not dates.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = _parse_date_string(value.strip())
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz).replace(tzinfo=None)
    return parsed


def _parse_date_string(text: str) -> Optional[datetime]:
    if not text:
        return None

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def is_boolean_token(value: Any) -> bool:
    """True for real booleans and the usual yes/no style tokens."""
    if isinstance(value, bool):
        return True
    if value is None:
        return False
    return str(value).strip().lower() in BOOLEAN_TOKENS


def round_half_up(value: float, places: int = 2) -> float:
    """
    Round half away from zero on the value's shortest decimal form.

    ``round()`` works on the binary value, which turns 0.125 into 0.12;
    currency and percentages here must round like a spreadsheet.
    """
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    result = float(rounded)
    return 0.0 if result == 0 else result
