from directory_search.schemas.search import WireModel


class SearchStatistics(WireModel):
    total_searches: int = 0
    unique_queries: int = 0
    average_results: int = 0
    average_execution_time_ms: int = 0
    zero_result_searches: int = 0
    click_throughs: int = 0


class TopQuery(WireModel):
    query: str
    count: int
    average_results: int
    average_execution_time_ms: int


class TrendPoint(WireModel):
    date: str
    search_count: int


class CacheStatus(WireModel):
    enabled: bool
    entries: int | None = None


class SearchStatsResponse(WireModel):
    period: str
    statistics: SearchStatistics
    top_queries: list[TopQuery]
    trends: list[TrendPoint]
    cache_status: CacheStatus | None = None
