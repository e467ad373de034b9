from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from directory_search.config import settings


class WireModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenWireModel(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    PARTIAL = "partial"

    @property
    def confidence(self) -> int:
        return _CONFIDENCE[self]


_CONFIDENCE = {MatchType.EXACT: 3, MatchType.FUZZY: 2, MatchType.PARTIAL: 1}

# Fixed field order used for matching and for reporting matched fields
SEARCHABLE_FIELDS = ("firstName", "lastName", "title", "department", "skills", "bio")


class SearchFilters(FrozenWireModel):
    department: str | None = None
    title: str | None = None
    skills: tuple[str, ...] = ()
    include_inactive: bool = False


class Pagination(FrozenWireModel):
    page: int = 1
    page_size: int = Field(default_factory=lambda: settings.default_page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class RankingWeights(FrozenWireModel):
    exact_match: float = Field(default_factory=lambda: settings.exact_weight)
    fuzzy_match: float = Field(default_factory=lambda: settings.fuzzy_weight)
    partial_match: float = Field(default_factory=lambda: settings.partial_weight)

    def for_type(self, match_type: MatchType) -> float:
        if match_type is MatchType.EXACT:
            return self.exact_match
        if match_type is MatchType.FUZZY:
            return self.fuzzy_match
        if match_type is MatchType.PARTIAL:
            return self.partial_match
        raise ValueError(f"Unknown match type: {match_type!r}")


class SearchOptions(FrozenWireModel):
    ranking_weights: RankingWeights | None = None
    fuzzy_threshold: float | None = None


class SearchQuery(FrozenWireModel):
    tenant_id: str
    raw_text: str
    text: str
    tokens: tuple[str, ...]
    filters: SearchFilters
    pagination: Pagination
    weights: RankingWeights
    fuzzy_threshold: float

    @property
    def is_empty(self) -> bool:
        return not self.tokens


class CandidateRecord(FrozenWireModel):
    id: str
    tenant_id: str
    first_name: str
    last_name: str
    email: str | None = None
    title: str | None = None
    department: str | None = None
    skills: tuple[str, ...] = ()
    bio: str | None = None
    photo_url: str | None = None
    is_active: bool = True
    updated_at: datetime

    def field_value(self, field: str) -> str | tuple[str, ...] | None:
        if field == "firstName":
            return self.first_name
        if field == "lastName":
            return self.last_name
        if field == "title":
            return self.title
        if field == "department":
            return self.department
        if field == "skills":
            return self.skills
        if field == "bio":
            return self.bio
        raise KeyError(field)


class MatchEvidence(FrozenWireModel):
    record_id: str
    match_type: MatchType
    matched_fields: tuple[str, ...]
    field_score: float


class RankedResult(WireModel):
    record: CandidateRecord
    rank: float
    match_type: MatchType
    matched_fields: list[str]


class AppliedFilters(WireModel):
    department: str | None = None
    title: str | None = None
    skills: list[str] | None = None
    include_inactive: bool = False


class SearchMeta(WireModel):
    cached: bool = False
    response_time: str = "0ms"
    result_count: int = 0
    search_types: list[MatchType] = []


class SearchResponse(WireModel):
    results: list[RankedResult]
    total: int
    page: int
    page_size: int
    has_more: bool
    query: str
    execution_time_ms: int
    suggestions: list[str] = []
    filters: AppliedFilters
    meta: SearchMeta
    message: str | None = None


class SuggestionsResponse(WireModel):
    suggestions: list[str]
    query: str
    count: int


class AutocompleteResponse(WireModel):
    suggestions: list[str]
    query: str
    type: str
    count: int


class TrackRequest(WireModel):
    query: str | None = None
    result_count: int = 0
    clicked_result: str | None = None


class TrackResponse(WireModel):
    message: str


class CacheClearResponse(WireModel):
    message: str
    keys_cleared: int
