"""Period-over-period trend records between two ranking runs."""

from typing import Dict, List, Optional, Sequence

from supplier_scoring.core.config import Settings, settings as default_settings
from supplier_scoring.schemas.scoring import RankingEntry, SupplierIdentity, TrendDirection, TrendRecord


def trend_direction(rank_delta: int, config: Optional[Settings] = None) -> TrendDirection:
    """Positive rank deltas beyond the threshold are improvements."""
    config = config or default_settings
    if rank_delta > config.trend_rank_threshold:
        return TrendDirection.IMPROVING
    if rank_delta < -config.trend_rank_threshold:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def insufficient_trend(
    supplier: SupplierIdentity,
    current: Optional[RankingEntry] = None,
    note: Optional[str] = None,
) -> TrendRecord:
    return TrendRecord(
        supplier=supplier,
        current_rank=current.rank if current else None,
        current_score=current.composite_score if current else None,
        current_tier=current.tier if current else None,
        direction=TrendDirection.INSUFFICIENT_DATA,
        note=note,
    )


def compare_entries(
    current: RankingEntry,
    previous: Optional[RankingEntry],
    config: Optional[Settings] = None,
) -> TrendRecord:
    """Trend record for one supplier present in the current run."""
    supplier = current.result.supplier
    if previous is None:
        return TrendRecord(
            supplier=supplier,
            current_rank=current.rank,
            current_score=current.composite_score,
            current_tier=current.tier,
            direction=TrendDirection.NEW_SUPPLIER,
        )

    rank_delta = previous.rank - current.rank
    return TrendRecord(
        supplier=supplier,
        current_rank=current.rank,
        current_score=current.composite_score,
        current_tier=current.tier,
        previous_rank=previous.rank,
        previous_score=previous.composite_score,
        previous_tier=previous.tier,
        rank_delta=rank_delta,
        score_delta=round(current.composite_score - previous.composite_score, 2),
        direction=trend_direction(rank_delta, config),
    )


def diff_rankings(
    current: Sequence[RankingEntry],
    previous: Optional[Sequence[RankingEntry]],
    config: Optional[Settings] = None,
    note: Optional[str] = None,
) -> List[TrendRecord]:
    """
    Diff two ranking runs by supplier id.

    ``previous=None`` (the previous run failed) or an empty previous run yields
    ``insufficient_data`` records. Suppliers only present in the previous run
    are dropped.
    """
    if not previous:
        reason = note or "No ranking data for the previous period"
        return [insufficient_trend(e.result.supplier, e, reason) for e in current]

    by_supplier: Dict[int, RankingEntry] = {e.supplier_id: e for e in previous}
    return [compare_entries(e, by_supplier.get(e.supplier_id), config) for e in current]
