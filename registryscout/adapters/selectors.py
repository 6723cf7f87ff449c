"""
Multi-candidate CSS selector extraction on top of BeautifulSoup.

Every field carries an ordered list of candidates: the selectors for the
current markup first, then the ones for older layouts. The first candidate
that matches wins, so a redesign that only touches one layout keeps working.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from ..domain.entities.normalization import clean_text


def _split(selectors: Sequence[str]) -> Tuple[str, ...]:
    out = []
    for group in selectors:
        out.extend(s.strip() for s in group.split(",") if s.strip())
    return tuple(out)


@dataclass(frozen=True)
class FieldSelector:
    primary: Tuple[str, ...]
    fallback: Tuple[str, ...] = ()
    attribute: Optional[str] = None  # read this attribute instead of text

    @classmethod
    def of(cls, primary: str, fallback: str = "", attribute: Optional[str] = None) -> "FieldSelector":
        return cls(
            primary=_split([primary]),
            fallback=_split([fallback]) if fallback else (),
            attribute=attribute,
        )

    @property
    def candidates(self) -> Tuple[str, ...]:
        return self.primary + self.fallback

    def find(self, root: Tag) -> Optional[Tag]:
        for selector in self.candidates:
            el = root.select_one(selector)
            if el is not None:
                return el
        return None

    def extract(self, root: Tag) -> Optional[str]:
        """Returns the first non-empty value across candidates, or None."""
        for selector in self.candidates:
            el = root.select_one(selector)
            if el is None:
                continue
            if self.attribute:
                value = el.get(self.attribute)
                if isinstance(value, list):
                    value = " ".join(value)
            else:
                value = el.get_text(" ", strip=True)
            value = clean_text(value)
            if value:
                return value
        return None


@dataclass(frozen=True)
class RowSelector:
    """Result-row selector: the primary row set, or the fallback set if it is empty."""

    primary: Tuple[str, ...]
    fallback: Tuple[str, ...] = ()

    @classmethod
    def of(cls, primary: str, fallback: str = "") -> "RowSelector":
        return cls(primary=_split([primary]), fallback=_split([fallback]) if fallback else ())

    def select(self, root: Tag) -> List[Tag]:
        for group in (self.primary, self.fallback):
            if not group:
                continue
            rows = root.select(", ".join(group))
            if rows:
                return rows
        return []


def soup_of(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def cell_texts(row: Tag) -> List[Optional[str]]:
    return [clean_text(td.get_text(" ", strip=True)) for td in row.find_all("td")]
