import asyncio
import logging
import uuid
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from sqlalchemy.orm import sessionmaker

from directory_search.models.analytics_event import AnalyticsEvent
from directory_search.schemas.analytics import (
    SearchStatistics,
    SearchStatsResponse,
    TopQuery,
    TrendPoint,
)

logger = logging.getLogger(__name__)

SEARCH_QUERY_EVENT = "search_query"
SEARCH_CLICK_EVENT = "search_click"
TOP_QUERY_LIMIT = 20

_TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class AnalyticsSink(Protocol):
    def record_event(
        self, tenant_id: str, event_type: str, metadata: dict[str, Any], user_id: str | None = None
    ) -> None: ...

    def search_stats(self, tenant_id: str, days: int) -> SearchStatsResponse: ...


def _avg(values: list[int | float]) -> int:
    return round(sum(values) / len(values)) if values else 0


def summarize_search_events(events: list[tuple[str, dict[str, Any], str]], days: int) -> SearchStatsResponse:
    """Aggregate (event_type, metadata, created_at) tuples into search statistics."""
    searches = [(meta, created) for etype, meta, created in events if etype == SEARCH_QUERY_EVENT]
    clicks = sum(1 for etype, _, _ in events if etype == SEARCH_CLICK_EVENT)

    result_counts = [int(meta.get("resultCount") or 0) for meta, _ in searches]
    exec_times = [int(meta.get("executionTimeMs") or 0) for meta, _ in searches]

    per_query: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for meta, _ in searches:
        if meta.get("query"):
            per_query[meta["query"]].append(meta)
    top = sorted(per_query.items(), key=lambda item: (-len(item[1]), item[0]))[:TOP_QUERY_LIMIT]

    per_day = Counter(created[:10] for _, created in searches)

    return SearchStatsResponse(
        period=f"{days} days",
        statistics=SearchStatistics(
            total_searches=len(searches),
            unique_queries=len(per_query),
            average_results=_avg(result_counts),
            average_execution_time_ms=_avg(exec_times),
            zero_result_searches=sum(1 for n in result_counts if n == 0),
            click_throughs=clicks,
        ),
        top_queries=[
            TopQuery(
                query=query,
                count=len(metas),
                average_results=_avg([int(m.get("resultCount") or 0) for m in metas]),
                average_execution_time_ms=_avg([int(m.get("executionTimeMs") or 0) for m in metas]),
            )
            for query, metas in top
        ],
        trends=[TrendPoint(date=day, search_count=n) for day, n in sorted(per_day.items())],
    )


class SqlAnalyticsSink:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record_event(
        self, tenant_id: str, event_type: str, metadata: dict[str, Any], user_id: str | None = None
    ) -> None:
        now = datetime.now(timezone.utc).strftime(_TS_FORMAT)
        with self._session_factory() as db:
            db.add(
                AnalyticsEvent(
                    id=str(uuid.uuid4()),
                    tenant_id=tenant_id,
                    user_id=user_id,
                    event_type=event_type,
                    payload=metadata,
                    created_at=now,
                )
            )
            db.commit()

    def search_stats(self, tenant_id: str, days: int) -> SearchStatsResponse:
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).strftime(_TS_FORMAT)
        with self._session_factory() as db:
            rows = (
                db.query(AnalyticsEvent.event_type, AnalyticsEvent.payload, AnalyticsEvent.created_at)
                .filter(
                    AnalyticsEvent.tenant_id == tenant_id,
                    AnalyticsEvent.event_type.in_((SEARCH_QUERY_EVENT, SEARCH_CLICK_EVENT)),
                    AnalyticsEvent.created_at >= cutoff,
                )
                .order_by(AnalyticsEvent.created_at)
                .all()
            )
        return summarize_search_events([(r.event_type, r.payload or {}, r.created_at) for r in rows], days)


class BackgroundEmitter:
    """Fire-and-forget delivery of analytics events; failures are logged and dropped."""

    def __init__(self, sink: AnalyticsSink):
        self._sink = sink
        self._tasks: set[asyncio.Task] = set()

    def emit(self, tenant_id: str, event_type: str, metadata: dict[str, Any], user_id: str | None = None):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; analytics event %s dropped", event_type)
            return
        task = loop.create_task(self._send(tenant_id, event_type, metadata, user_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, tenant_id: str, event_type: str, metadata: dict[str, Any], user_id: str | None):
        try:
            await asyncio.to_thread(self._sink.record_event, tenant_id, event_type, metadata, user_id)
        except Exception as exc:
            logger.warning("Analytics event %s dropped for tenant %s: %r", event_type, tenant_id, exc)

    async def drain(self):
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
