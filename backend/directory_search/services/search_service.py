import logging
import time
from typing import Any, Mapping

from directory_search.config import settings
from directory_search.errors import CacheError, StoreError
from directory_search.schemas.search import (
    AppliedFilters,
    Pagination,
    SearchFilters,
    SearchMeta,
    SearchOptions,
    SearchQuery,
    SearchResponse,
)
from directory_search.services.analytics import SEARCH_QUERY_EVENT, BackgroundEmitter
from directory_search.services.cache import CacheStore, search_cache_key
from directory_search.services.matching import match
from directory_search.services.normalizer import normalize
from directory_search.services.ranking import group_evidence, rank
from directory_search.services.record_source import RecordSource, fetch_candidates
from directory_search.services.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)

EMPTY_QUERY_MESSAGE = "Please enter a search term"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def applied_filters(filters: SearchFilters) -> AppliedFilters:
    return AppliedFilters(
        department=filters.department,
        title=filters.title,
        skills=list(filters.skills) or None,
        include_inactive=filters.include_inactive,
    )


def no_results_message(raw_query: str, suggestions: list[str]) -> str:
    if suggestions:
        return f'No results found for "{raw_query}". Did you mean: {", ".join(suggestions)}?'
    return f'No results found for "{raw_query}". Try different keywords or check spelling.'


class SearchOrchestrator:
    """
    Request pipeline: normalize, cache lookup, fetch, match, rank, paginate,
    suggest, cache write, analytics.

    Cache and analytics failures are logged and never fail a search. Record
    source failures surface as StoreError and nothing is cached.
    """

    def __init__(
        self,
        source: RecordSource,
        cache: CacheStore,
        emitter: BackgroundEmitter | None = None,
        suggestions: SuggestionGenerator | None = None,
    ):
        self._source = source
        self._cache = cache
        self._emitter = emitter
        self._suggestions = suggestions or SuggestionGenerator(source)

    async def search_request(
        self,
        tenant_id: str,
        raw_query: str | None,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        pagination: Pagination | Mapping[str, Any] | None = None,
        options: SearchOptions | None = None,
        user_id: str | None = None,
    ) -> SearchResponse:
        started = time.perf_counter()
        query = normalize(tenant_id, raw_query, filters, pagination, options)
        return await self.search(query, user_id=user_id, started=started)

    async def search(
        self, query: SearchQuery, user_id: str | None = None, started: float | None = None
    ) -> SearchResponse:
        started = started if started is not None else time.perf_counter()
        if query.is_empty:
            return self._empty_response(query, started)

        key = search_cache_key(query)
        cached = await self._cache_get(key)
        if cached is not None:
            elapsed = _elapsed_ms(started)
            response = cached.model_copy(
                update={
                    "execution_time_ms": elapsed,
                    "meta": cached.meta.model_copy(update={"cached": True, "response_time": f"{elapsed}ms"}),
                }
            )
            self._emit(query, response, user_id)
            return response

        candidates = await fetch_candidates(self._source, query.tenant_id, query.filters)
        records = {record.id: record for record in candidates}
        ranked = rank(group_evidence(match(candidates, query)), records, query.weights)

        total = len(ranked)
        page = query.pagination
        page_results = ranked[page.offset:page.offset + page.page_size]

        suggestions: list[str] = []
        if total == 0 or total < settings.low_results_threshold:
            suggestions = await self._suggest(query)

        elapsed = _elapsed_ms(started)
        search_types = sorted({r.match_type for r in page_results}, key=lambda t: -t.confidence)
        response = SearchResponse(
            results=page_results,
            total=total,
            page=page.page,
            page_size=page.page_size,
            has_more=page.page * page.page_size < total,
            query=query.raw_text,
            execution_time_ms=elapsed,
            suggestions=suggestions,
            filters=applied_filters(query.filters),
            meta=SearchMeta(
                cached=False,
                response_time=f"{elapsed}ms",
                result_count=len(page_results),
                search_types=search_types,
            ),
            message=no_results_message(query.raw_text, suggestions) if total == 0 else None,
        )

        await self._cache_set(key, response)
        self._emit(query, response, user_id)

        if elapsed > settings.slow_search_ms:
            logger.warning(
                "Search exceeded %dms: %dms for tenant %s", settings.slow_search_ms, elapsed, query.tenant_id
            )
        return response

    async def invalidate_tenant(self, tenant_id: str) -> int:
        """Drop every cached search of a tenant, e.g. after a record mutation."""
        try:
            cleared = await self._cache.delete_namespace(tenant_id)
        except CacheError as exc:
            logger.warning("Cache invalidation failed for tenant %s: %r", tenant_id, exc.__cause__ or exc)
            return 0
        logger.info("Cleared %d cached searches for tenant %s", cleared, tenant_id)
        return cleared

    async def cache_entries(self, tenant_id: str) -> int | None:
        try:
            return await self._cache.count(tenant_id)
        except CacheError as exc:
            logger.warning("Cache status unavailable for tenant %s: %r", tenant_id, exc.__cause__ or exc)
            return None

    async def drain(self):
        if self._emitter is not None:
            await self._emitter.drain()

    def _empty_response(self, query: SearchQuery, started: float) -> SearchResponse:
        elapsed = _elapsed_ms(started)
        return SearchResponse(
            results=[],
            total=0,
            page=query.pagination.page,
            page_size=query.pagination.page_size,
            has_more=False,
            query=query.raw_text.strip(),
            execution_time_ms=elapsed,
            suggestions=[],
            filters=applied_filters(query.filters),
            meta=SearchMeta(cached=False, response_time=f"{elapsed}ms"),
            message=EMPTY_QUERY_MESSAGE,
        )

    async def _cache_get(self, key: str) -> SearchResponse | None:
        try:
            return await self._cache.get(key)
        except CacheError as exc:
            logger.warning("Cache read failed, treating as miss: %r", exc.__cause__ or exc)
            return None

    async def _cache_set(self, key: str, response: SearchResponse):
        try:
            await self._cache.set(key, response, settings.cache_ttl_seconds)
        except CacheError as exc:
            logger.warning("Cache write failed: %r", exc.__cause__ or exc)

    async def _suggest(self, query: SearchQuery) -> list[str]:
        try:
            return await self._suggestions.suggest(query.tenant_id, query.text)
        except StoreError:
            logger.warning("Suggestions unavailable for tenant %s", query.tenant_id)
            return []

    def _emit(self, query: SearchQuery, response: SearchResponse, user_id: str | None):
        if self._emitter is None:
            return
        self._emitter.emit(
            query.tenant_id,
            SEARCH_QUERY_EVENT,
            {
                "query": query.text,
                "resultCount": response.total,
                "executionTimeMs": response.execution_time_ms,
                "filters": response.filters.model_dump(mode="json", by_alias=True, exclude_none=True),
                "cached": response.meta.cached,
            },
            user_id=user_id,
        )
