from typing import Any, Mapping

from directory_search.config import settings
from directory_search.errors import TenantContextError, ValidationError
from directory_search.schemas.search import (
    Pagination,
    RankingWeights,
    SearchFilters,
    SearchOptions,
    SearchQuery,
)
from directory_search.utils.text import normalize_text, tokenize

MIN_FUZZY_THRESHOLD = 0.1
MAX_FUZZY_THRESHOLD = 1.0

_FILTER_KEYS = ("department", "title", "skills", "include_inactive", "includeInactive")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_filters(filters: SearchFilters | Mapping[str, Any] | None) -> SearchFilters:
    if filters is None:
        return SearchFilters()
    if isinstance(filters, SearchFilters):
        raw = filters.model_dump()
    else:
        # Unknown keys are ignored
        raw = {k: v for k, v in filters.items() if k in _FILTER_KEYS}
        if "includeInactive" in raw:
            raw["include_inactive"] = raw.pop("includeInactive")

    skills = raw.get("skills") or ()
    if isinstance(skills, str):
        skills = skills.split(",")
    unique_skills: dict[str, None] = {}
    for skill in skills:
        cleaned = _clean(skill)
        if cleaned:
            unique_skills.setdefault(cleaned.casefold(), None)

    return SearchFilters(
        department=_clean(raw.get("department")),
        title=_clean(raw.get("title")),
        skills=tuple(unique_skills),
        include_inactive=bool(raw.get("include_inactive", False)),
    )


def normalize_pagination(page: int | None = None, page_size: int | None = None) -> Pagination:
    if page is None:
        page = 1
    if page < 1:
        raise ValidationError("Page must be greater than 0", field="page")
    if page_size is None:
        page_size = settings.default_page_size
    # Oversized or undersized page sizes are clamped, not rejected
    page_size = max(1, min(page_size, settings.max_page_size))
    return Pagination(page=page, page_size=page_size)


def normalize_options(options: SearchOptions | None) -> tuple[RankingWeights, float]:
    options = options or SearchOptions()

    threshold = options.fuzzy_threshold
    if threshold is None:
        threshold = settings.fuzzy_threshold
    elif not MIN_FUZZY_THRESHOLD <= threshold <= MAX_FUZZY_THRESHOLD:
        raise ValidationError(
            f"Fuzzy threshold must be between {MIN_FUZZY_THRESHOLD} and {MAX_FUZZY_THRESHOLD}",
            field="fuzzyThreshold",
        )

    weights = options.ranking_weights or RankingWeights()
    values = (weights.exact_match, weights.fuzzy_match, weights.partial_match)
    if any(w < 0 for w in values) or not any(values):
        raise ValidationError(
            "Ranking weights must be non-negative and not all zero",
            field="rankingWeights",
        )
    return weights, threshold


def normalize(
    tenant_id: str,
    raw_query: str | None,
    filters: SearchFilters | Mapping[str, Any] | None = None,
    pagination: Pagination | Mapping[str, Any] | None = None,
    options: SearchOptions | None = None,
) -> SearchQuery:
    """Validate raw request input and build an immutable SearchQuery."""
    if not tenant_id:
        raise TenantContextError("Tenant context is required")
    raw_query = raw_query or ""
    if not isinstance(raw_query, str):
        raise ValidationError("Search query must be a string", field="query")
    if len(raw_query.strip()) > settings.max_query_length:
        raise ValidationError(
            f"Search query must not exceed {settings.max_query_length} characters",
            field="query",
        )

    if pagination is None:
        pagination = normalize_pagination()
    elif isinstance(pagination, Pagination):
        pagination = normalize_pagination(pagination.page, pagination.page_size)
    else:
        pagination = normalize_pagination(
            pagination.get("page"), pagination.get("page_size", pagination.get("pageSize"))
        )

    weights, threshold = normalize_options(options)
    text = normalize_text(raw_query)

    return SearchQuery(
        tenant_id=tenant_id,
        raw_text=raw_query,
        text=text,
        tokens=tuple(tokenize(text)),
        filters=normalize_filters(filters),
        pagination=pagination,
        weights=weights,
        fuzzy_threshold=threshold,
    )
