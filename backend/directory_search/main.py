import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from directory_search.config import settings
from directory_search.database import get_engine, get_session_factory, init_db
from directory_search.errors import DirectoryError
from directory_search.routers import search
from directory_search.services.analytics import AnalyticsSink, BackgroundEmitter, SqlAnalyticsSink
from directory_search.services.autocomplete import AutocompleteEngine
from directory_search.services.cache import CacheStore, InMemoryCacheStore, RedisCacheStore
from directory_search.services.record_source import RecordSource, SqlRecordSource
from directory_search.services.search_service import SearchOrchestrator
from directory_search.services.suggestions import SuggestionGenerator
from directory_search.services.tenant_context import TenantContextProvider, TokenTenantContextProvider

logger = logging.getLogger("directory_search")

VERSION = "0.1.0"


def _default_cache() -> CacheStore:
    if settings.redis_url:
        return RedisCacheStore.from_url(settings.redis_url)
    return InMemoryCacheStore()


def create_app(
    engine: Engine | None = None,
    record_source: RecordSource | None = None,
    cache: CacheStore | None = None,
    analytics_sink: AnalyticsSink | None = None,
    tenant_provider: TenantContextProvider | None = None,
) -> FastAPI:
    """Build the API with its collaborators; anything not passed in gets the default implementation."""
    engine = engine or get_engine()
    session_factory = get_session_factory(engine)
    record_source = record_source or SqlRecordSource(session_factory)
    analytics_sink = analytics_sink or SqlAnalyticsSink(session_factory)
    emitter = BackgroundEmitter(analytics_sink)
    suggestions = SuggestionGenerator(record_source)
    orchestrator = SearchOrchestrator(
        record_source,
        cache if cache is not None else _default_cache(),
        emitter=emitter,
        suggestions=suggestions,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: make sure the employee and analytics tables exist
        try:
            init_db(engine)
        except Exception as exc:
            logger.error("Could not initialise database schema: %s", exc)
        yield
        # Shutdown: let pending analytics events finish
        await orchestrator.drain()

    app = FastAPI(
        title="Directory Search",
        description="Multi-tenant people directory search with typo tolerance and autocomplete",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.orchestrator = orchestrator
    app.state.suggestions = suggestions
    app.state.autocomplete = AutocompleteEngine(record_source)
    app.state.emitter = emitter
    app.state.analytics_sink = analytics_sink
    app.state.tenant_provider = tenant_provider or TokenTenantContextProvider()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DirectoryError)
    async def directory_error_handler(request: Request, exc: DirectoryError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
        )

    app.include_router(search.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
