from typing import Iterable

from directory_search.config import settings
from directory_search.schemas.search import CandidateRecord, SearchFilters
from directory_search.services.record_source import RecordSource, fetch_candidates
from directory_search.utils.text import normalize_text, similarity, tokenize

MIN_SUGGESTION_QUERY = 2


def distinct_terms(terms: Iterable[str | None]) -> list[str]:
    """De-duplicate case-insensitively, keeping the lexically smallest spelling."""
    chosen: dict[str, str] = {}
    for term in terms:
        if not term or not term.strip():
            continue
        term = term.strip()
        key = term.casefold()
        if key not in chosen or term < chosen[key]:
            chosen[key] = term
    return sorted(chosen.values(), key=lambda t: (t.casefold(), t))


def vocabulary(records: Iterable[CandidateRecord]) -> list[str]:
    terms: list[str | None] = []
    for record in records:
        terms.extend((record.first_name, record.last_name, record.title, record.department))
        terms.extend(record.skills)
    return distinct_terms(terms)


def score_term(text: str, tokens: list[str], term: str) -> float:
    best = similarity(text, term)
    for token in tokens:
        best = max(best, similarity(token, term))
    return best


def rank_terms(text: str, terms: Iterable[str], floor: float, limit: int) -> list[str]:
    """Terms similar to ``text`` above ``floor``, best first, ties broken lexically."""
    tokens = tokenize(text)
    scored = []
    for term in terms:
        if term.casefold() == text:
            continue
        score = score_term(text, tokens, term)
        if score >= floor:
            scored.append((score, term))
    scored.sort(key=lambda item: (-item[0], item[1].casefold(), item[1]))
    return [term for _, term in scored[:limit]]


class SuggestionGenerator:
    """'Did you mean' hints drawn from the tenant's names, titles, departments and skills."""

    def __init__(self, source: RecordSource):
        self._source = source

    async def suggest(self, tenant_id: str, text: str, limit: int | None = None) -> list[str]:
        text = normalize_text(text)
        if len(text) < MIN_SUGGESTION_QUERY:
            return []
        limit = min(limit or settings.suggestion_limit, settings.suggestion_limit)
        records = await fetch_candidates(self._source, tenant_id, SearchFilters())
        return rank_terms(text, vocabulary(records), settings.suggestion_floor, limit)
