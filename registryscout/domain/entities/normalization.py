"""
Normalization helpers shared by every source parser.
Pure functions, no I/O.
"""

import re
from datetime import datetime
from typing import Iterable, Optional, Tuple

_WHITESPACE = re.compile(r"\s+")
_ISO_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$")
_YEAR_ONLY = re.compile(r"^(\d{4})$")
_TENURE_SPACED = re.compile(r"^(.+?)\s+(?:-|–|to)\s+(.+)$", re.IGNORECASE)
_TENURE_COMPACT = re.compile(
    r"^(\d{4}(?:-\d{2}-\d{2})?)\s*[-–]\s*(\d{4}(?:-\d{2}-\d{2})?|present|current)$",
    re.IGNORECASE,
)
_OPEN_ENDED = ("present", "current", "now")

_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y%m%d",
)


def clean_text(value: Optional[str]) -> Optional[str]:
    """Collapses whitespace and strips. Blank strings become None."""
    if value is None:
        return None
    text = _WHITESPACE.sub(" ", str(value)).strip()
    return text or None


def normalize_date(raw: Optional[str]) -> Optional[str]:
    """
    Converts the date formats seen across registries into ISO YYYY-MM-DD.
    Returns None for blanks and anything unparseable.
    """
    text = clean_text(raw)
    if not text:
        return None

    iso = _ISO_PREFIX.match(text)
    if iso:
        candidate = iso.group(1)
        try:
            datetime.strptime(candidate, "%Y-%m-%d")
            return candidate
        except ValueError:
            return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    year = _YEAR_ONLY.match(text)
    if year:
        return f"{year.group(1)}-01-01"
    return None


def normalize_address(parts: Iterable[Optional[str]]) -> Optional[str]:
    """Joins the non-empty address components with ', '."""
    cleaned = [c for c in (clean_text(p) for p in parts) if c]
    return ", ".join(cleaned) if cleaned else None


def parse_tenure(raw: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Splits tenure strings such as '2015 - present' or
    '01/02/2010 - 03/04/2012' into (start_date, end_date).
    """
    text = clean_text(raw)
    if not text:
        return None, None
    match = _TENURE_SPACED.match(text) or _TENURE_COMPACT.match(text)
    if not match:
        return normalize_date(text), None
    start, end = match.group(1), match.group(2)
    if end.lower() in _OPEN_ENDED:
        return normalize_date(start), None
    return normalize_date(start), normalize_date(end)


def parse_count(raw: Optional[str]) -> Optional[int]:
    """Pulls the first integer out of strings like 'Found 1,234 companies'."""
    text = clean_text(raw)
    if not text:
        return None
    match = re.search(r"\d[\d,]*", text)
    if not match:
        return None
    return int(match.group(0).replace(",", ""))
