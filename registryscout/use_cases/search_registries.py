"""
SearchRegistriesUseCase - Top-level orchestrator.

Validates the request, fans the query out to every requested registry
source (concurrently or one at a time), and merges the per-source
ScraperResults into one response. A source that blows up only fails
its own entry; the rest of the run is unaffected.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..domain.errors import ErrorCode
from ..domain.interfaces.i_registry_source import (
    IRegistrySource,
    ScraperResult,
    SearchOptions,
    SearchType,
)
from ..domain.validation import validate_jurisdiction, validate_limit, validate_search_query

logger = logging.getLogger(__name__)

_SEP = "=" * 70


@dataclass
class SearchRegistriesRequest:
    query: str
    sources: Optional[List[str]] = None  # None means the default source set
    search_type: str = "company"
    limit: int = 20
    parallel: bool = True
    jurisdiction: Optional[str] = None
    include_inactive: bool = True
    current_only: bool = False


@dataclass
class SearchRegistriesResponse:
    query: str
    search_type: SearchType
    results: Dict[str, ScraperResult] = field(default_factory=dict)
    total_found: int = 0
    successful: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "searchType": self.search_type.value,
            "results": {source: r.to_dict() for source, r in self.results.items()},
            "totalFound": self.total_found,
            "successful": list(self.successful),
            "failed": list(self.failed),
            "duration": self.duration_ms,
        }


class SearchRegistriesUseCase:
    """
    Orchestrates one multi-source search.
    - Rejects bad queries, limits and unknown source keys before any I/O
    - Runs each source's strategy pipeline (gather, or strictly in order)
    - Converts a crashing source into a failed UNKNOWN result for that source
    - Sums total_found over the successful sources only
    """

    def __init__(self, sources: Dict[str, IRegistrySource], default_sources: Sequence[str]):
        self.sources = sources
        self.default_sources = list(default_sources)

    async def execute(self, request: SearchRegistriesRequest) -> SearchRegistriesResponse:
        query = validate_search_query(request.query)
        search_type = SearchType(request.search_type)
        options = SearchOptions(
            limit=validate_limit(request.limit),
            jurisdiction=validate_jurisdiction(request.jurisdiction),
            include_inactive=request.include_inactive,
            current_only=request.current_only,
        )
        keys = self._resolve_sources(request.sources)

        wall_start = time.monotonic()
        mode = "parallel" if request.parallel else "sequential"
        logger.info(_SEP)
        logger.info(f"[Search] {search_type.value} search {query!r} | sources={keys} | {mode}")
        logger.info(_SEP)

        if request.parallel:
            outcomes = await asyncio.gather(*[self._search_one(k, search_type, query, options) for k in keys])
        else:
            outcomes = []
            for key in keys:
                outcomes.append(await self._search_one(key, search_type, query, options))

        response = SearchRegistriesResponse(query=query, search_type=search_type)
        for key, result in zip(keys, outcomes):
            response.results[key] = result
            if result.success:
                response.successful.append(key)
                response.total_found += result.total_found
            else:
                response.failed.append(key)
        response.duration_ms = int((time.monotonic() - wall_start) * 1000)

        # ── Final summary ──────────────────────────────────────────────────
        logger.info(_SEP)
        logger.info(
            f"[Search] Done in {response.duration_ms}ms | total_found={response.total_found} | "
            f"successful={response.successful} | failed={response.failed}"
        )
        for key in response.failed:
            logger.warning(f"[Search]   {key}: {response.results[key].error}")
        logger.info(_SEP)
        return response

    async def _search_one(
        self, key: str, search_type: SearchType, query: str, options: SearchOptions
    ) -> ScraperResult:
        source = self.sources[key]
        started = time.monotonic()
        try:
            if search_type == SearchType.COMPANY:
                return await source.search_companies(query, options)
            return await source.search_officers(query, options)
        except Exception as exc:
            logger.error(f"[Search] Source {key!r} crashed: {exc!r}", exc_info=True)
            return ScraperResult.failure(
                key,
                query,
                error=ErrorCode.UNKNOWN.value,
                duration_ms=int((time.monotonic() - started) * 1000),
                warnings=[f"{type(exc).__name__}: {exc}"],
            )

    def _resolve_sources(self, requested: Optional[List[str]]) -> List[str]:
        keys = list(requested) if requested else list(self.default_sources)
        unknown = [k for k in keys if k not in self.sources]
        if unknown:
            raise ValueError(f"Unknown source(s): {', '.join(unknown)}. Known: {', '.join(sorted(self.sources))}")
        # Keep the caller's order, drop duplicates
        return list(dict.fromkeys(keys))
