import secrets
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from directory_search.config import settings

PRIVILEGED_ROLES = frozenset({"admin", "super_admin"})
INACTIVE_VIEWER_ROLES = PRIVILEGED_ROLES | {"hr_admin"}


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    user_id: str | None = None
    role: str = "employee"

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def can_view_inactive(self) -> bool:
        return self.role in INACTIVE_VIEWER_ROLES


class TenantContextProvider(Protocol):
    def resolve(self, token: str) -> TenantContext | None: ...


class TokenTenantContextProvider:
    """
    In-memory registry of expiring bearer tokens, each bound to one tenant
    and role. Identity lives elsewhere; whatever issues sessions registers
    them here.
    """

    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.time):
        self._tokens: dict[str, tuple[float, TenantContext]] = {}  # token -> (expires_at, context)
        self._ttl = ttl_seconds or settings.token_ttl_seconds
        self._clock = clock

    def _cleanup_expired(self):
        now = self._clock()
        self._tokens = {t: v for t, v in self._tokens.items() if v[0] > now}

    def issue(self, tenant_id: str, user_id: str | None = None, role: str = "employee") -> str:
        token = secrets.token_hex(32)
        self._tokens[token] = (self._clock() + self._ttl, TenantContext(tenant_id, user_id, role))
        return token

    def revoke(self, token: str):
        self._tokens.pop(token, None)

    def resolve(self, token: str) -> TenantContext | None:
        self._cleanup_expired()
        entry = self._tokens.get(token)
        return entry[1] if entry else None
