from fastapi import Depends, Header, Request

from directory_search.errors import ForbiddenError, TenantContextError
from directory_search.services.analytics import AnalyticsSink, BackgroundEmitter
from directory_search.services.autocomplete import AutocompleteEngine
from directory_search.services.search_service import SearchOrchestrator
from directory_search.services.suggestions import SuggestionGenerator
from directory_search.services.tenant_context import TenantContext


async def require_tenant(
    request: Request,
    authorization: str | None = Header(None),
    x_tenant_id: str | None = Header(None),
) -> TenantContext:
    # Fails closed: nothing is served without a resolved tenant
    if not authorization or not authorization.startswith("Bearer "):
        raise TenantContextError("Missing bearer token")
    context = request.app.state.tenant_provider.resolve(authorization[7:])
    if context is None:
        raise TenantContextError("Invalid or expired token")
    if x_tenant_id and x_tenant_id != context.tenant_id:
        raise TenantContextError("Tenant does not match the authenticated session")
    return context


async def require_privileged(context: TenantContext = Depends(require_tenant)) -> TenantContext:
    if not context.is_privileged:
        raise ForbiddenError("Admin access required")
    return context


def get_orchestrator(request: Request) -> SearchOrchestrator:
    return request.app.state.orchestrator


def get_suggestion_generator(request: Request) -> SuggestionGenerator:
    return request.app.state.suggestions


def get_autocomplete_engine(request: Request) -> AutocompleteEngine:
    return request.app.state.autocomplete


def get_emitter(request: Request) -> BackgroundEmitter:
    return request.app.state.emitter


def get_analytics_sink(request: Request) -> AnalyticsSink:
    return request.app.state.analytics_sink
