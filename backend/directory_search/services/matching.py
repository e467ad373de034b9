"""
Per-field matching of query tokens against candidate records.

Strategies are tried in a fixed priority: exact, then fuzzy, then partial.
An exact hit on a field settles that field; the other fields are still
evaluated independently.
"""
from typing import Iterable

from directory_search.config import settings
from directory_search.schemas.search import (
    SEARCHABLE_FIELDS,
    CandidateRecord,
    MatchEvidence,
    MatchType,
    SearchQuery,
)
from directory_search.utils.text import strip_token, token_similarity, words

EXACT_SCORE = 1.0


def _is_exact(field: str, value, query: SearchQuery) -> bool:
    if field == "skills":
        # Tokens lose edge punctuation, so ".NET" is compared as "net"
        return any(
            strip_token(skill.casefold()) in query.tokens or skill.casefold() == query.text for skill in value
        )
    folded = value.casefold()
    return any(token in folded for token in query.tokens)


def _field_words(field: str, value) -> list[str]:
    if field == "skills":
        return [w for skill in value for w in words(skill)]
    return words(value)


def _best_fuzzy(tokens: Iterable[str], field_words: list[str]) -> float:
    best = 0.0
    for token in tokens:
        if len(token) < settings.min_fuzzy_token_length:
            continue
        for word in field_words:
            score = token_similarity(token, word)
            if score > best:
                best = score
    return best


def _common_prefix(a: str, b: str) -> int:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n


def _is_partial(tokens: Iterable[str], field_words: list[str]) -> bool:
    min_len = settings.min_partial_prefix
    for token in tokens:
        for word in field_words:
            if len(word) >= min_len and word in token:
                return True
            if _common_prefix(token, word) >= min_len:
                return True
    return False


def match_field(field: str, value, query: SearchQuery) -> list[tuple[MatchType, float]]:
    """Return the (strategy, raw score) hits for one field of one record."""
    if not value:
        return []
    if _is_exact(field, value, query):
        return [(MatchType.EXACT, EXACT_SCORE)]

    hits: list[tuple[MatchType, float]] = []
    field_words = _field_words(field, value)
    similarity = _best_fuzzy(query.tokens, field_words)
    if similarity >= query.fuzzy_threshold:
        hits.append((MatchType.FUZZY, min(similarity, 1.0)))
    if _is_partial(query.tokens, field_words):
        hits.append((MatchType.PARTIAL, settings.partial_score))
    return hits


def match_record(record: CandidateRecord, query: SearchQuery) -> list[MatchEvidence]:
    evidence = []
    for field in SEARCHABLE_FIELDS:
        for match_type, score in match_field(field, record.field_value(field), query):
            evidence.append(
                MatchEvidence(
                    record_id=record.id,
                    match_type=match_type,
                    matched_fields=(field,),
                    field_score=score,
                )
            )
    return evidence


def match(candidates: Iterable[CandidateRecord], query: SearchQuery) -> list[MatchEvidence]:
    """Collect match evidence for every candidate; records without any are left out."""
    if query.is_empty:
        return []
    evidence: list[MatchEvidence] = []
    for record in candidates:
        evidence.extend(match_record(record, query))
    return evidence
