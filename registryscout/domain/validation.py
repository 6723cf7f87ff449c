"""
Input validation for search requests.
Invalid input is a caller programming error and raises ValueError.
"""

import re
from typing import Optional

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 200
MAX_LIMIT = 100

_UNSAFE_CHARS = re.compile(r"[<>\"'`\\;(){}\[\]]")
_JURISDICTION = re.compile(r"^[a-z]{2}(_[a-z]{2,3})?$")


def validate_search_query(query: Optional[str]) -> str:
    """Strips markup/injection characters and enforces length bounds."""
    if query is None:
        raise ValueError("Search query is required")
    cleaned = _UNSAFE_CHARS.sub("", query)
    cleaned = " ".join(cleaned.split())
    if len(cleaned) < MIN_QUERY_LENGTH:
        raise ValueError(f"Search query must be at least {MIN_QUERY_LENGTH} characters")
    if len(cleaned) > MAX_QUERY_LENGTH:
        raise ValueError(f"Search query must be at most {MAX_QUERY_LENGTH} characters")
    return cleaned


def validate_limit(limit: int) -> int:
    if limit < 1:
        raise ValueError("limit must be a positive integer")
    return min(limit, MAX_LIMIT)


def validate_jurisdiction(code: Optional[str]) -> Optional[str]:
    if code is None or code == "":
        return None
    normalized = code.strip().lower()
    if not _JURISDICTION.match(normalized):
        raise ValueError(f"Invalid jurisdiction code: {code!r} (expected e.g. 'us_de')")
    return normalized


def escape_soql(value: str) -> str:
    """Escapes a literal for a Socrata SoQL string."""
    return value.replace("'", "''")


_LIKE_WILDCARDS = re.compile(r"[%_]")


def has_like_wildcards(value: str) -> bool:
    """SoQL LIKE has no escape for % and _, so matches on such terms must be re-checked locally."""
    return bool(_LIKE_WILDCARDS.search(value))


def contains_literally(text: Optional[str], term: str) -> bool:
    return term.upper() in (text or "").upper()
