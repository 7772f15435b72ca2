"""
Component scorers.

Each scorer maps a metrics snapshot (and, for price, the peer set) to a
0-100 ``ComponentScore`` with a rationale string. Missing metrics produce the
configured neutral score instead of an error so that suppliers with sparse
history are not penalized.
"""

import statistics
from typing import Dict, Iterable, List, Optional, Sequence

from supplier_scoring.core.config import Settings, settings as default_settings
from supplier_scoring.schemas.metrics import DeliveryRecord, QualityDetail, SupplierMetricsSnapshot
from supplier_scoring.schemas.scoring import ComponentName, ComponentScore
from supplier_scoring.services.supplier_performance import thresholds as t
from supplier_scoring.services.supplier_performance.thresholds import (
    clamp_score,
    lookup_above,
    lookup_at_least,
    lookup_at_most,
)

AVERAGE_DELAY_UNKNOWN = 15.0


def neutral_component(reason: str, config: Optional[Settings] = None) -> ComponentScore:
    """Neutral score used when the metrics a scorer needs are absent."""
    config = config or default_settings
    return ComponentScore(score=clamp_score(config.neutral_score), rationale=reason, neutral=True)


# ==================== PRICE ====================

def peer_average_order_value(snapshots: Iterable[SupplierMetricsSnapshot]) -> Optional[float]:
    """Mean average-order-value across the peers that have any orders."""
    values = [s.mean_order_value for s in snapshots if s.mean_order_value]
    if not values:
        return None
    return sum(values) / len(values)


def score_price(
    snapshot: SupplierMetricsSnapshot,
    peer_mean: Optional[float],
    config: Optional[Settings] = None,
) -> ComponentScore:
    """Lower average order value than the peer mean scores higher."""
    own = snapshot.mean_order_value
    if not own or not peer_mean:
        return neutral_component("No order value data for price comparison", config)

    ratio = own / peer_mean
    score = lookup_at_most(ratio, t.PRICE_RATIO_BANDS, t.PRICE_RATIO_FLOOR)
    return ComponentScore(
        score=clamp_score(score),
        rationale=f"Average order value {own:.2f} is {ratio:.2f}x the peer mean {peer_mean:.2f}",
    )


# ==================== DELIVERY ====================

def _delivery_stats_from_records(records: Sequence[DeliveryRecord], grace_days: float):
    delays = [r.delay_days for r in records]
    on_time = sum(1 for d in delays if d <= grace_days)
    std = statistics.pstdev(delays) if len(delays) > 1 else 0.0
    return len(delays), on_time / len(delays) * 100, statistics.fmean(delays), std


def score_delivery(
    snapshot: SupplierMetricsSnapshot,
    records: Optional[Sequence[DeliveryRecord]] = None,
    config: Optional[Settings] = None,
) -> ComponentScore:
    """On-time rate (60) + average delay (25) + delay consistency (15)."""
    config = config or default_settings

    if records:
        count, on_time_rate, mean_delay, delay_std = _delivery_stats_from_records(
            records, config.delivery_grace_days
        )
    elif snapshot.delivery is not None and snapshot.delivery.total_count > 0:
        stats = snapshot.delivery
        count = stats.total_count
        on_time_rate = stats.on_time_rate
        mean_delay = stats.mean_delay_days
        delay_std = stats.delay_std_days
    else:
        return neutral_component("No delivery timing data", config)

    rate_points = lookup_at_least(on_time_rate, t.ON_TIME_RATE_POINTS, t.ON_TIME_RATE_FLOOR)
    if mean_delay is None:
        delay_points = AVERAGE_DELAY_UNKNOWN
    else:
        delay_points = lookup_at_most(mean_delay, t.AVERAGE_DELAY_POINTS, t.AVERAGE_DELAY_FLOOR)
    if delay_std is None:
        consistency_points = t.DELAY_CONSISTENCY_UNKNOWN
    else:
        consistency_points = lookup_at_most(delay_std, t.DELAY_CONSISTENCY_POINTS, t.DELAY_CONSISTENCY_FLOOR)

    delay_text = "unknown" if mean_delay is None else f"{mean_delay:+.2f}d"
    return ComponentScore(
        score=clamp_score(rate_points + delay_points + consistency_points),
        rationale=(
            f"{on_time_rate:.1f}% on time over {count} deliveries ({rate_points:g} pts), "
            f"average delay {delay_text} ({delay_points:g} pts), "
            f"consistency {consistency_points:g} pts"
        ),
    )


# ==================== QUALITY ====================

def score_quality(
    snapshot: SupplierMetricsSnapshot,
    detail: Optional[QualityDetail] = None,
    config: Optional[Settings] = None,
) -> ComponentScore:
    """Start at 100 and subtract tiered penalties for returns, adjustments and defects."""
    if detail is not None:
        total = detail.transaction_count
        returns, adjustments, defects = detail.return_count, detail.adjustment_count, detail.defect_count
    else:
        total = snapshot.order_count
        returns, adjustments, defects = snapshot.return_count, snapshot.adjustment_count, snapshot.defect_count

    if total == 0:
        return neutral_component("No transactions to assess quality", config)

    return_rate = returns / total * 100
    adjustment_rate = adjustments / total * 100
    defect_rate = defects / total * 100

    penalty = (
        lookup_above(return_rate, t.RETURN_RATE_PENALTIES, 0.0)
        + lookup_above(adjustment_rate, t.ADJUSTMENT_RATE_PENALTIES, 0.0)
        + lookup_above(defect_rate, t.ADJUSTMENT_RATE_PENALTIES, 0.0)
    )
    score = 100.0 - penalty

    rationale = (
        f"Return rate {return_rate:.2f}%, adjustment rate {adjustment_rate:.2f}%, "
        f"defect rate {defect_rate:.2f}% over {total} transactions (-{penalty:g})"
    )
    if returns + adjustments + defects == 0 and total >= t.ZERO_ISSUE_MIN_TRANSACTIONS:
        score += t.ZERO_ISSUE_BONUS
        rationale += f", +{t.ZERO_ISSUE_BONUS:g} zero-issue bonus"

    return ComponentScore(score=clamp_score(score), rationale=rationale)


# ==================== FULFILLMENT ====================

def score_reliability(snapshot: SupplierMetricsSnapshot, config: Optional[Settings] = None) -> ComponentScore:
    """Base 70 plus frequency, regularity, diversity and volume points."""
    if snapshot.order_count == 0:
        return neutral_component("No orders to assess reliability", config)

    frequency = lookup_at_least(
        snapshot.order_count, t.TRANSACTION_FREQUENCY_POINTS, t.TRANSACTION_FREQUENCY_FLOOR
    )
    interval = snapshot.average_order_interval_days
    regularity = 0.0 if interval is None else lookup_at_most(
        interval, t.ORDER_INTERVAL_POINTS, t.ORDER_INTERVAL_FLOOR
    )
    diversity = lookup_at_least(snapshot.unique_products, t.PRODUCT_DIVERSITY_POINTS, 0.0)
    volume = t.BUSINESS_VOLUME_BONUS if snapshot.total_value > 0 else 0.0

    interval_text = "unknown interval" if interval is None else f"{interval:.1f}d interval"
    return ComponentScore(
        score=clamp_score(t.RELIABILITY_BASE + frequency + regularity + diversity + volume),
        rationale=(
            f"{snapshot.order_count} orders (+{frequency:g}), {interval_text} (+{regularity:g}), "
            f"{snapshot.unique_products} products (+{diversity:g}), volume +{volume:g}"
        ),
    )


def score_order_fulfillment(snapshot: SupplierMetricsSnapshot, config: Optional[Settings] = None) -> ComponentScore:
    """Fulfillment rate from order statuses, minus a cancellation penalty."""
    completed = snapshot.completed_count or 0
    partial = snapshot.partial_count or 0
    cancelled = snapshot.cancelled_count or 0
    # Pending orders are not settled yet and do not count either way
    total = completed + partial + cancelled
    if total == 0:
        return neutral_component("No orders to assess fulfillment", config)

    rate = (completed + t.PARTIAL_FULFILLMENT_CREDIT * partial) / total * 100
    cancellation_rate = cancelled / total
    score = rate - cancellation_rate * t.CANCELLATION_PENALTY_FACTOR

    rationale = f"Fulfillment rate {rate:.1f}%, cancellation rate {cancellation_rate * 100:.1f}%"
    if rate >= t.FULFILLMENT_CONSISTENCY_RATE and total >= t.FULFILLMENT_CONSISTENCY_MIN_ORDERS:
        score += t.FULFILLMENT_CONSISTENCY_BONUS
        rationale += f", +{t.FULFILLMENT_CONSISTENCY_BONUS:g} consistency bonus"

    return ComponentScore(score=clamp_score(score), rationale=rationale)


def score_fulfillment(snapshot: SupplierMetricsSnapshot, config: Optional[Settings] = None) -> ComponentScore:
    """Pick the fulfillment formulation the settings ask for."""
    config = config or default_settings
    variant = config.fulfillment_variant
    if variant == "order" or (variant == "auto" and snapshot.has_status_breakdown):
        return score_order_fulfillment(snapshot, config)
    return score_reliability(snapshot, config)


# ==================== PAYMENT ====================

def score_payment(snapshot: SupplierMetricsSnapshot, config: Optional[Settings] = None) -> ComponentScore:
    """Base 50 plus points for generous commercial terms."""
    if not snapshot.has_commercial_terms:
        return neutral_component("No commercial terms on record", config)

    parts: List[str] = []
    score = t.PAYMENT_BASE

    if snapshot.payment_term_days is not None:
        term_points = lookup_at_least(snapshot.payment_term_days, t.PAYMENT_TERM_POINTS, t.PAYMENT_TERM_FLOOR)
        score += term_points
        parts.append(f"{snapshot.payment_term_days}-day terms (+{term_points:g})")

    if snapshot.early_payment_discount:
        score += t.EARLY_PAYMENT_DISCOUNT_BONUS
        parts.append(f"early-payment discount (+{t.EARLY_PAYMENT_DISCOUNT_BONUS:g})")

    if snapshot.credit_limit:
        credit_points = lookup_at_least(snapshot.credit_limit, t.CREDIT_LIMIT_POINTS, t.ANY_CREDIT_LIMIT_POINTS)
        score += credit_points
        parts.append(f"credit limit {snapshot.credit_limit:,.0f} (+{credit_points:g})")

    method_points = lookup_at_least(len(snapshot.payment_methods), t.PAYMENT_METHOD_POINTS, 0.0)
    if method_points:
        score += method_points
        parts.append(f"{len(snapshot.payment_methods)} payment methods (+{method_points:g})")

    return ComponentScore(
        score=clamp_score(score),
        rationale="Base 50; " + ", ".join(parts) if parts else "Base 50",
    )


# ==================== RESPONSE ====================

def score_response(snapshot: SupplierMetricsSnapshot, config: Optional[Settings] = None) -> ComponentScore:
    """Average time from placement to completion, faster is better."""
    hours = snapshot.average_response_hours
    if hours is None:
        return neutral_component("No completion timing data", config)

    days = hours / 24
    score = lookup_at_most(days, t.RESPONSE_DAYS_SCORES, None)
    if score is None:
        score = max(t.RESPONSE_FLOOR, 100.0 - t.RESPONSE_DECAY_PER_DAY * days)

    return ComponentScore(
        score=clamp_score(score),
        rationale=f"Average completion time {days:.2f} days",
    )


# ==================== ALL COMPONENTS ====================

def score_components(
    snapshot: SupplierMetricsSnapshot,
    peer_mean: Optional[float],
    delivery_records: Optional[Sequence[DeliveryRecord]] = None,
    quality_detail: Optional[QualityDetail] = None,
    config: Optional[Settings] = None,
) -> Dict[ComponentName, ComponentScore]:
    """Run all six scorers for one supplier."""
    return {
        ComponentName.PRICE: score_price(snapshot, peer_mean, config),
        ComponentName.DELIVERY: score_delivery(snapshot, delivery_records, config),
        ComponentName.QUALITY: score_quality(snapshot, quality_detail, config),
        ComponentName.FULFILLMENT: score_fulfillment(snapshot, config),
        ComponentName.PAYMENT: score_payment(snapshot, config),
        ComponentName.RESPONSE: score_response(snapshot, config),
    }


def score_sparse_components(
    snapshot: SupplierMetricsSnapshot,
    required: int,
    config: Optional[Settings] = None,
) -> Dict[ComponentName, ComponentScore]:
    """Scores for a supplier below the minimum transaction count.

    Every transaction-derived component is neutral. Payment terms come from
    the supplier record, not from activity, so they are still scored.
    """
    reason = (
        f"Only {snapshot.order_count} transactions in window ({required} required); neutral score applied"
    )
    components = {name: neutral_component(reason, config) for name in ComponentName}
    components[ComponentName.PAYMENT] = score_payment(snapshot, config)
    return components
