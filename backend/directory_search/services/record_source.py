import asyncio
import logging
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from directory_search.config import settings
from directory_search.errors import StoreError
from directory_search.models.employee import Employee
from directory_search.schemas.search import CandidateRecord, SearchFilters

logger = logging.getLogger(__name__)

FETCH_ATTEMPTS = 2


class RecordSource(Protocol):
    def find_candidates(self, tenant_id: str, filters: SearchFilters) -> list[CandidateRecord]: ...


def employee_to_candidate(employee: Employee) -> CandidateRecord:
    return CandidateRecord(
        id=employee.id,
        tenant_id=employee.tenant_id,
        first_name=employee.first_name,
        last_name=employee.last_name,
        email=employee.email,
        title=employee.title,
        department=employee.department,
        skills=tuple(employee.skills or ()),
        bio=employee.bio,
        photo_url=employee.photo_url,
        is_active=employee.is_active,
        updated_at=employee.updated_at,
    )


def has_all_skills(record: CandidateRecord, skills: tuple[str, ...]) -> bool:
    held = {s.casefold() for s in record.skills}
    return all(skill.casefold() in held for skill in skills)


class SqlRecordSource:
    """Read-only view of the ``employees`` table, filtered by tenant and coarse filters."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def find_candidates(self, tenant_id: str, filters: SearchFilters) -> list[CandidateRecord]:
        try:
            with self._session_factory() as db:
                query = db.query(Employee).filter(Employee.tenant_id == tenant_id)
                if not filters.include_inactive:
                    query = query.filter(Employee.is_active.is_(True))
                if filters.department:
                    query = query.filter(func.lower(Employee.department) == filters.department.lower())
                if filters.title:
                    query = query.filter(
                        func.lower(Employee.title).contains(filters.title.lower(), autoescape=True)
                    )
                rows = query.order_by(Employee.id).all()
                records = [employee_to_candidate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError() from exc

        # Skills live in a JSON column; exact, case-insensitive containment is checked here
        if filters.skills:
            records = [r for r in records if has_all_skills(r, filters.skills)]
        return records


def ingest(records: list[CandidateRecord], tenant_id: str) -> list[CandidateRecord]:
    """Drop any record that does not belong to the requesting tenant."""
    accepted = []
    for record in records:
        if record.tenant_id != tenant_id:
            logger.error(
                "Record source returned record %s of tenant %s for tenant %s; dropped",
                record.id, record.tenant_id, tenant_id,
            )
            continue
        accepted.append(record)
    return accepted


async def fetch_candidates(
    source: RecordSource,
    tenant_id: str,
    filters: SearchFilters,
    timeout: float | None = None,
    backoff: float | None = None,
) -> list[CandidateRecord]:
    """
    Fetch candidates off the event loop, bounded by a timeout.

    A failed or timed-out fetch is retried once after a short backoff; a
    second failure surfaces as a generic StoreError.
    """
    timeout = settings.record_source_timeout_seconds if timeout is None else timeout
    backoff = settings.record_source_retry_backoff_seconds if backoff is None else backoff

    for attempt in range(1, FETCH_ATTEMPTS + 1):
        try:
            records = await asyncio.wait_for(
                asyncio.to_thread(source.find_candidates, tenant_id, filters),
                timeout,
            )
            return ingest(records, tenant_id)
        except Exception as exc:
            if attempt == FETCH_ATTEMPTS:
                logger.error("Record source failed for tenant %s: %r", tenant_id, exc)
                raise StoreError() from exc
            logger.warning(
                "Record source attempt %d failed for tenant %s, retrying: %r",
                attempt, tenant_id, exc,
            )
            await asyncio.sleep(backoff)
    raise StoreError()
