"""Ranking, percentiles and tier distribution across a scored supplier set."""

import statistics
from typing import List, Optional, Sequence

from supplier_scoring.schemas.scoring import (
    RankingEntry,
    RankingSummary,
    SupplierScoreResult,
    Tier,
    TierDistributionRow,
    WeightProfile,
)
from supplier_scoring.services.supplier_performance.thresholds import round_half_up


def percentile_for(rank: int, total: int) -> int:
    """Share of the set at or below this rank, as a whole percentage."""
    return round_half_up((total - rank + 1) / total * 100)


def rank_results(results: Sequence[SupplierScoreResult]) -> List[RankingEntry]:
    """Sort by composite score (desc), ties by supplier id, and assign rank/percentile."""
    ordered = sorted(results, key=lambda r: (-r.composite_score, r.supplier_id))
    total = len(ordered)
    return [
        RankingEntry(result=result, rank=position, percentile=percentile_for(position, total))
        for position, result in enumerate(ordered, start=1)
    ]


def tier_distribution(entries: Sequence[RankingEntry]) -> List[TierDistributionRow]:
    """Count, share and average composite per tier, one row per tier."""
    total = len(entries)
    rows = []
    for tier in Tier:
        scores = [e.composite_score for e in entries if e.tier == tier]
        rows.append(TierDistributionRow(
            tier=tier,
            count=len(scores),
            percentage=round(len(scores) / total * 100, 2) if total else 0.0,
            average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
        ))
    return rows


def summarize_rankings(
    entries: Sequence[RankingEntry],
    profile: WeightProfile,
    performance_threshold: Optional[float] = None,
) -> Optional[RankingSummary]:
    if not entries:
        return None

    scores = [e.composite_score for e in entries]
    above = None
    if performance_threshold is not None:
        above = sum(1 for s in scores if s >= performance_threshold)

    return RankingSummary(
        total_suppliers=len(scores),
        average_score=round(statistics.fmean(scores), 2),
        median_score=round(statistics.median(scores), 2),
        max_score=max(scores),
        min_score=min(scores),
        performance_threshold=performance_threshold,
        suppliers_above_threshold=above,
        weights_used={name: round(w, 4) for name, w in profile.weights.items()},
    )
