from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Mapping

from directory_search.config import settings
from directory_search.schemas.search import (
    SEARCHABLE_FIELDS,
    CandidateRecord,
    MatchEvidence,
    MatchType,
    RankedResult,
    RankingWeights,
)


def group_evidence(evidence: Iterable[MatchEvidence]) -> dict[str, list[MatchEvidence]]:
    grouped: dict[str, list[MatchEvidence]] = defaultdict(list)
    for item in evidence:
        grouped[item.record_id].append(item)
    return dict(grouped)


def combine_score(evidence: list[MatchEvidence], weights: RankingWeights) -> float:
    total = sum(e.field_score * weights.for_type(e.match_type) for e in evidence)
    score = total / settings.normalization_factor
    return round(max(0.0, min(score, 1.0)), 6)


def best_match_type(evidence: list[MatchEvidence]) -> MatchType:
    return max((e.match_type for e in evidence), key=lambda t: t.confidence)


def ordered_fields(evidence: list[MatchEvidence]) -> list[str]:
    seen = {field for e in evidence for field in e.matched_fields}
    return [field for field in SEARCHABLE_FIELDS if field in seen]


def _timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def sort_key(result: RankedResult):
    record = result.record
    return (-result.rank, -_timestamp(record.updated_at), record.last_name.casefold(), record.id)


def rank(
    evidence_by_record: Mapping[str, list[MatchEvidence]],
    records: Mapping[str, CandidateRecord],
    weights: RankingWeights,
) -> list[RankedResult]:
    """
    Merge per-field evidence into one ordered result list.

    Order is rank descending, then most recently updated, then last name,
    then id, so identical inputs always produce identical output.
    """
    results = []
    for record_id, evidence in evidence_by_record.items():
        if not evidence:
            continue
        results.append(
            RankedResult(
                record=records[record_id],
                rank=combine_score(evidence, weights),
                match_type=best_match_type(evidence),
                matched_fields=ordered_fields(evidence),
            )
        )
    results.sort(key=sort_key)
    return results
