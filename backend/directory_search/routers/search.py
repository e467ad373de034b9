import asyncio

from fastapi import APIRouter, Depends, Query

from directory_search.dependencies import (
    get_analytics_sink,
    get_autocomplete_engine,
    get_emitter,
    get_orchestrator,
    get_suggestion_generator,
    require_privileged,
    require_tenant,
)
from directory_search.errors import ValidationError
from directory_search.schemas.analytics import CacheStatus, SearchStatsResponse
from directory_search.schemas.search import (
    AutocompleteResponse,
    CacheClearResponse,
    RankingWeights,
    SearchFilters,
    SearchOptions,
    SearchResponse,
    SuggestionsResponse,
    TrackRequest,
    TrackResponse,
)
from directory_search.services.analytics import (
    SEARCH_CLICK_EVENT,
    SEARCH_QUERY_EVENT,
    AnalyticsSink,
    BackgroundEmitter,
)
from directory_search.services.autocomplete import AutocompleteEngine
from directory_search.services.search_service import SearchOrchestrator
from directory_search.services.suggestions import MIN_SUGGESTION_QUERY, SuggestionGenerator
from directory_search.services.tenant_context import TenantContext

router = APIRouter(prefix="/search", tags=["search"])


def _split_skills(skills: str | None) -> tuple[str, ...]:
    if not skills:
        return ()
    return tuple(s for s in (part.strip() for part in skills.split(",")) if s)


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query(""),
    department: str | None = None,
    title: str | None = None,
    skills: str | None = None,
    include_inactive: bool = Query(False, alias="includeInactive"),
    page: int = Query(1),
    page_size: int | None = Query(None, alias="pageSize"),
    fuzzy_threshold: float | None = Query(None, alias="fuzzyThreshold"),
    exact_weight: float | None = Query(None, alias="exactWeight"),
    fuzzy_weight: float | None = Query(None, alias="fuzzyWeight"),
    partial_weight: float | None = Query(None, alias="partialWeight"),
    context: TenantContext = Depends(require_tenant),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    # Inactive records are only visible to roles allowed to see them
    filters = SearchFilters(
        department=department,
        title=title,
        skills=_split_skills(skills),
        include_inactive=include_inactive and context.can_view_inactive,
    )
    overrides = {
        "exact_match": exact_weight,
        "fuzzy_match": fuzzy_weight,
        "partial_match": partial_weight,
    }
    weights = RankingWeights(**{k: v for k, v in overrides.items() if v is not None})
    options = SearchOptions(
        ranking_weights=weights if any(v is not None for v in overrides.values()) else None,
        fuzzy_threshold=fuzzy_threshold,
    )
    pagination = {"page": page, "page_size": page_size}
    return await orchestrator.search_request(
        context.tenant_id,
        q,
        filters=filters,
        pagination=pagination,
        options=options,
        user_id=context.user_id,
    )


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    q: str = Query(""),
    limit: int = Query(5),
    context: TenantContext = Depends(require_tenant),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
):
    limit = max(1, min(limit, 10))
    if len(q.strip()) < MIN_SUGGESTION_QUERY:
        return SuggestionsResponse(suggestions=[], query=q, count=0)
    found = await generator.suggest(context.tenant_id, q, limit=limit)
    return SuggestionsResponse(suggestions=found, query=q, count=len(found))


@router.get("/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(
    q: str = Query(""),
    kind: str = Query("all", alias="type"),
    limit: int | None = Query(None),
    context: TenantContext = Depends(require_tenant),
    engine: AutocompleteEngine = Depends(get_autocomplete_engine),
):
    found = await engine.autocomplete(context.tenant_id, q, kind=kind, limit=limit)
    return AutocompleteResponse(suggestions=found, query=q, type=kind, count=len(found))


@router.post("/track", response_model=TrackResponse)
async def track(
    req: TrackRequest,
    context: TenantContext = Depends(require_tenant),
    emitter: BackgroundEmitter = Depends(get_emitter),
):
    if not req.query or not req.query.strip():
        raise ValidationError("Query is required", field="query")
    event_type = SEARCH_CLICK_EVENT if req.clicked_result else SEARCH_QUERY_EVENT
    emitter.emit(
        context.tenant_id,
        event_type,
        {
            "query": req.query.strip().casefold(),
            "resultCount": max(req.result_count, 0),
            "executionTimeMs": 0,
            "clickedResult": req.clicked_result,
        },
        user_id=context.user_id,
    )
    return TrackResponse(message="Search analytics tracked successfully")


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(
    context: TenantContext = Depends(require_privileged),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    cleared = await orchestrator.invalidate_tenant(context.tenant_id)
    return CacheClearResponse(
        message=f"Search cache cleared successfully ({cleared} entries removed)",
        keys_cleared=cleared,
    )


@router.get("/stats", response_model=SearchStatsResponse)
async def stats(
    days: int = Query(30),
    context: TenantContext = Depends(require_privileged),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
    sink: AnalyticsSink = Depends(get_analytics_sink),
):
    days = max(1, min(days, 365))
    result = await asyncio.to_thread(sink.search_stats, context.tenant_id, days)
    entries = await orchestrator.cache_entries(context.tenant_id)
    return result.model_copy(update={"cache_status": CacheStatus(enabled=entries is not None, entries=entries)})
