"""
Helper Functions Module
XML escaping, Tally date handling and amount parsing
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Tuple

from .constants import MAX_FILENAME_LENGTH


_XML_ESCAPES = [
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
]

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Human formats accepted after the compact YYYYMMDD form
_DATE_FORMATS = [
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
]

_LEADING_NUMBER = re.compile(r"^\s*(-?(?:\d[\d,]*)?\.?\d+)")


def escape_xml(value: Any) -> str:
    """Escape a value for use in Tally XML text or attributes"""
    if value is None:
        return ""
    text = str(value)
    for raw, escaped in _XML_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def decode_xml(text: Optional[str]) -> str:
    """Decode the five predefined XML entities"""
    if not text:
        return ""
    return (
        text.replace("&amp;", "&")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&apos;", "'")
    )


def to_tally_date(value: Any) -> Optional[str]:
    """
    Normalize a date-like value to YYYYMMDD.

    Accepts date/datetime objects, YYYYMMDD or YYYY-MM-DD strings and the
    common human formats. Returns None when the value cannot be read as a
    date, which callers treat as "no date constraint".
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime("%Y%m%d")
    if isinstance(value, date):
        return value.strftime("%Y%m%d")

    text = str(value).strip()
    compact = text.replace("-", "")
    if len(compact) == 8 and compact.isdigit():
        try:
            datetime.strptime(compact, "%Y%m%d")
            return compact
        except ValueError:
            pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%Y%m%d")
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).strftime("%Y%m%d")
    except ValueError:
        return None


def tally_date_to_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYYMMDD into a date, None when invalid"""
    if not value or len(value) < 8:
        return None
    try:
        return datetime.strptime(value[:8], "%Y%m%d").date()
    except ValueError:
        return None


def format_tally_date(value: Optional[str]) -> str:
    """YYYYMMDD -> DD-MM-YYYY"""
    if not value or len(value) < 8:
        return value or ""
    return f"{value[6:8]}-{value[4:6]}-{value[0:4]}"


def to_tally_filter_date(value: Optional[str]) -> str:
    """YYYYMMDD -> D-Mon-YYYY, the form Tally accepts inside vouchers"""
    if not value or len(value) < 8:
        return value or ""
    month = int(value[4:6])
    day = int(value[6:8])
    return f"{day}-{_MONTHS[month - 1]}-{value[0:4]}"


def date_to_tally(value: date) -> str:
    """date -> YYYYMMDD"""
    return value.strftime("%Y%m%d")


def today_str(today: Optional[date] = None) -> str:
    """Today as YYYYMMDD"""
    return date_to_tally(today or date.today())


def fy_start(today: Optional[date] = None) -> str:
    """First day (1 April) of the Indian financial year containing today"""
    today = today or date.today()
    year = today.year if today.month >= 4 else today.year - 1
    return f"{year}0401"


def month_start(today: Optional[date] = None) -> str:
    """First day of the current month as YYYYMMDD"""
    today = today or date.today()
    return date_to_tally(today.replace(day=1))


def split_date_range(from_date: Optional[str], to_date: Optional[str], chunk_days: int = 7) -> List[Tuple[Optional[str], Optional[str]]]:
    """
    Split a YYYYMMDD range into contiguous inclusive windows of chunk_days.

    Missing, invalid or inverted ranges are returned unchanged as one window.
    """
    start = tally_date_to_date(from_date)
    end = tally_date_to_date(to_date)
    if not from_date or not to_date or start is None or end is None or start > end:
        return [(from_date, to_date)]

    chunk_days = max(1, int(chunk_days))
    windows = []
    current = start
    while current <= end:
        chunk_end = min(current + timedelta(days=chunk_days - 1), end)
        windows.append((date_to_tally(current), date_to_tally(chunk_end)))
        current = chunk_end + timedelta(days=1)
    return windows


def parse_tally_amount(amount_str: Optional[str]) -> float:
    """Parse the leading number of a Tally amount/quantity string"""
    if not amount_str or amount_str == "ñ":
        return 0.0
    match = _LEADING_NUMBER.match(amount_str)
    if not match:
        return 0.0
    try:
        return float(match.group(1).replace(",", ""))
    except ValueError:
        return 0.0


def split_quantity(text: Optional[str]) -> Tuple[float, str]:
    """'25 Nos' -> (25.0, 'Nos')"""
    if not text:
        return 0.0, ""
    qty = parse_tally_amount(text)
    unit = _LEADING_NUMBER.sub("", text, count=1).strip()
    return qty, unit


def safe_filename(
    name: str, pattern: str = r"[^a-zA-Z0-9\-_]", replacement: str = "_", max_length: int = MAX_FILENAME_LENGTH
) -> str:
    """Strip characters that are unsafe in attachment filenames and cap the length"""
    return re.sub(pattern, replacement, name or "")[:max_length]
