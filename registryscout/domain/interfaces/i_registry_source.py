"""
IRegistrySource - Port: one business registry behind a strategy pipeline.
Implementations fetch from open-data APIs, plain HTTP, or a stealth browser.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from ..entities.business_entity import ScrapedBusinessEntity, ScrapedOfficer, utc_now

T = TypeVar("T")


class SearchType(str, Enum):
    COMPANY = "company"
    OFFICER = "officer"


@dataclass
class SearchOptions:
    limit: int = 20
    jurisdiction: Optional[str] = None  # e.g. "us_de", honoured by aggregators
    include_inactive: bool = True
    current_only: bool = False


@dataclass
class ScraperResult(Generic[T]):
    """
    Outcome of one source search.
    success=True with empty data is a valid "zero matches" result;
    a failed result never carries data.
    """

    success: bool
    source: str
    query: str
    data: List[T] = field(default_factory=list)
    total_found: int = 0
    duration_ms: int = 0
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    scraped_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.success and self.data:
            raise ValueError("A failed ScraperResult must not carry data")

    @classmethod
    def ok(
        cls,
        source: str,
        query: str,
        data: List[T],
        total_found: Optional[int] = None,
        duration_ms: int = 0,
        warnings: Optional[List[str]] = None,
    ) -> "ScraperResult[T]":
        return cls(
            success=True,
            source=source,
            query=query,
            data=list(data),
            total_found=max(total_found or 0, len(data)),
            duration_ms=duration_ms,
            warnings=list(warnings or []),
        )

    @classmethod
    def failure(
        cls,
        source: str,
        query: str,
        error: str,
        duration_ms: int = 0,
        warnings: Optional[List[str]] = None,
    ) -> "ScraperResult[T]":
        return cls(
            success=False,
            source=source,
            query=query,
            error=error,
            duration_ms=duration_ms,
            warnings=list(warnings or []),
        )

    def to_dict(self) -> dict:
        payload = {
            "success": self.success,
            "data": [item.to_dict() for item in self.data],
            "totalFound": self.total_found,
            "source": self.source,
            "query": self.query,
            "scrapedAt": self.scraped_at.isoformat().replace("+00:00", "Z"),
            "duration": self.duration_ms,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload


class IRegistrySource(ABC):
    """Port for one business registry (state SOS or aggregator)."""

    source: str

    @abstractmethod
    async def search_companies(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> ScraperResult[ScrapedBusinessEntity]:
        """
        Searches the registry for companies whose name matches query.
        Never raises for source-side failures; returns success=False instead.
        """
        pass

    @abstractmethod
    async def search_officers(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> ScraperResult[ScrapedOfficer]:
        """Searches the registry for officers / agents whose name matches query."""
        pass
