from typing import Iterable

from directory_search.config import settings
from directory_search.errors import ValidationError
from directory_search.schemas.search import CandidateRecord, SearchFilters
from directory_search.services.record_source import RecordSource, fetch_candidates
from directory_search.services.suggestions import distinct_terms
from directory_search.utils.text import normalize_text, token_similarity, words

AUTOCOMPLETE_TYPES = ("names", "titles", "departments", "skills", "all")
MIN_FRAGMENT_LENGTH = 2


def terms_for(records: Iterable[CandidateRecord], kind: str) -> list[str]:
    terms: list[str | None] = []
    for record in records:
        if kind in ("names", "all"):
            terms.extend((record.first_name, record.last_name))
        if kind in ("titles", "all"):
            terms.append(record.title)
        if kind in ("departments", "all"):
            terms.append(record.department)
        if kind in ("skills", "all"):
            terms.extend(record.skills)
    return distinct_terms(terms)


def complete(fragment: str, terms: list[str], limit: int, threshold: float) -> list[str]:
    """
    Whole-value prefix matches first, then matches on a later word of the
    value, then fuzzy matches for typos. Each tier keeps lexical order
    except the fuzzy tier, which is ordered by similarity.
    """
    chosen: list[str] = []
    for term in terms:
        if term.casefold().startswith(fragment):
            chosen.append(term)
    for term in terms:
        if term not in chosen and any(w.startswith(fragment) for w in words(term)[1:]):
            chosen.append(term)

    if len(chosen) < limit and len(fragment) >= settings.min_fuzzy_token_length:
        fuzzy = []
        for term in terms:
            if term in chosen:
                continue
            score = max((token_similarity(fragment, w) for w in words(term)), default=0.0)
            if score >= threshold:
                fuzzy.append((score, term))
        fuzzy.sort(key=lambda item: (-item[0], item[1].casefold(), item[1]))
        chosen.extend(term for _, term in fuzzy)
    return chosen[:limit]


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return settings.autocomplete_default_limit
    return max(1, min(limit, settings.autocomplete_max_limit))


class AutocompleteEngine:
    """Typeahead over active records. Not cached and not ranked by the combiner."""

    def __init__(self, source: RecordSource):
        self._source = source

    async def autocomplete(
        self, tenant_id: str, fragment: str, kind: str = "all", limit: int | None = None
    ) -> list[str]:
        if kind not in AUTOCOMPLETE_TYPES:
            raise ValidationError(
                f"Autocomplete type must be one of: {', '.join(AUTOCOMPLETE_TYPES)}", field="type"
            )
        limit = clamp_limit(limit)
        fragment = normalize_text(fragment or "")
        if len(fragment) < MIN_FRAGMENT_LENGTH:
            return []
        records = await fetch_candidates(self._source, tenant_id, SearchFilters())
        return complete(fragment, terms_for(records, kind), limit, settings.fuzzy_threshold)
