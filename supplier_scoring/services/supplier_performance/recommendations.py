"""
Rule-based recommendations and alerts over a ranked supplier set.

Rules are independent: each one inspects the ranked entries and returns zero
or more items. Generation is best-effort; a failing rule set is logged and
produces empty lists rather than failing the ranking call.
"""

import logging
from typing import Callable, Dict, List, Sequence, Tuple

from supplier_scoring.schemas.scoring import (
    Alert,
    Priority,
    RankingEntry,
    Recommendation,
    RiskLevel,
    Tier,
)

logger = logging.getLogger(__name__)

TOP_TIER = Tier.PREMIUM
STRATEGIC_PARTNER_LIMIT = 3
CONCENTRATION_THRESHOLD = 70.0

CRITICAL_COMPOSITE = 40.0
QUALITY_ALERT_THRESHOLD = 50.0
DELIVERY_ALERT_THRESHOLD = 60.0
OPPORTUNITY_COMPOSITE = 90.0


def _names(entries: Sequence[RankingEntry]) -> str:
    return ", ".join(e.result.supplier.name or f"#{e.supplier_id}" for e in entries)


# ===== RECOMMENDATION RULES =====

def strategic_partnership_rule(entries: Sequence[RankingEntry]) -> List[Recommendation]:
    partners = [e for e in entries if e.tier == TOP_TIER][:STRATEGIC_PARTNER_LIMIT]
    if not partners:
        return []
    return [Recommendation(
        type="strategic_partnership",
        priority=Priority.HIGH,
        title="Develop Strategic Partnerships",
        message=f"Top-tier suppliers {_names(partners)} are candidates for long-term agreements.",
        supplier_ids=[e.supplier_id for e in partners],
        actions=[
            "Negotiate long-term contracts with volume commitments",
            "Share demand forecasts for joint planning",
            "Set up quarterly business reviews",
        ],
    )]


def development_program_rule(entries: Sequence[RankingEntry]) -> List[Recommendation]:
    candidates = [
        e for e in entries
        if e.tier == Tier.DEVELOPING and e.result.risk_level != RiskLevel.HIGH
    ]
    if not candidates:
        return []
    return [Recommendation(
        type="development_program",
        priority=Priority.MEDIUM,
        title="Enrol Suppliers in a Development Program",
        message=f"{len(candidates)} developing-tier supplier(s) show potential: {_names(candidates)}.",
        supplier_ids=[e.supplier_id for e in candidates],
        actions=[
            "Agree improvement targets for the weakest components",
            "Schedule monthly performance check-ins",
        ],
    )]


def risk_mitigation_rule(entries: Sequence[RankingEntry]) -> List[Recommendation]:
    risky = [e for e in entries if e.result.risk_level == RiskLevel.HIGH]
    if not risky:
        return []
    return [Recommendation(
        type="risk_mitigation",
        priority=Priority.CRITICAL,
        title="Mitigate High-Risk Suppliers",
        message=f"{len(risky)} supplier(s) carry high risk: {_names(risky)}.",
        supplier_ids=[e.supplier_id for e in risky],
        actions=[
            "Qualify alternative suppliers for affected products",
            "Increase safety stock for items sourced from these suppliers",
            "Conduct a supplier audit",
        ],
    )]


def diversification_rule(entries: Sequence[RankingEntry]) -> List[Recommendation]:
    if not entries:
        return []
    top = [e for e in entries if e.tier == TOP_TIER]
    share = len(top) / len(entries) * 100
    if share <= CONCENTRATION_THRESHOLD:
        return []
    return [Recommendation(
        type="diversification",
        priority=Priority.MEDIUM,
        title="Review Supplier Concentration",
        message=(
            f"{share:.1f}% of suppliers sit in the top tier; "
            "the scoring spread may be too narrow to differentiate the supplier base."
        ),
        supplier_ids=[e.supplier_id for e in top],
        actions=[
            "Review scoring weights for the current business priority",
            "Benchmark against suppliers outside the current base",
        ],
    )]


RECOMMENDATION_RULES: List[Callable[[Sequence[RankingEntry]], List[Recommendation]]] = [
    strategic_partnership_rule,
    development_program_rule,
    risk_mitigation_rule,
    diversification_rule,
]


# ===== ALERT RULES =====

def _alert(entry: RankingEntry, type_: str, severity: Priority, message: str, value: float, actions: List[str]) -> Alert:
    return Alert(
        type=type_,
        severity=severity,
        supplier_id=entry.supplier_id,
        supplier_name=entry.result.supplier.name,
        message=message,
        value=value,
        actions=actions,
    )


def supplier_alerts(entry: RankingEntry) -> List[Alert]:
    """All alerts raised by a single supplier."""
    result = entry.result
    alerts = []

    if result.composite_score < CRITICAL_COMPOSITE:
        alerts.append(_alert(
            entry, "critical_performance", Priority.CRITICAL,
            f"Composite score {result.composite_score:.2f} is below {CRITICAL_COMPOSITE:g}",
            result.composite_score,
            ["Escalate to procurement management", "Prepare a supplier exit plan"],
        ))
    if result.scores.quality < QUALITY_ALERT_THRESHOLD:
        alerts.append(_alert(
            entry, "quality_issue", Priority.HIGH,
            f"Quality score {result.scores.quality:.2f} is below {QUALITY_ALERT_THRESHOLD:g}",
            result.scores.quality,
            ["Conduct quality audit with supplier", "Implement incoming inspection process"],
        ))
    if result.scores.delivery < DELIVERY_ALERT_THRESHOLD:
        alerts.append(_alert(
            entry, "delivery_issue", Priority.MEDIUM,
            f"Delivery score {result.scores.delivery:.2f} is below {DELIVERY_ALERT_THRESHOLD:g}",
            result.scores.delivery,
            ["Review delivery commitments with supplier"],
        ))
    if result.composite_score > OPPORTUNITY_COMPOSITE and result.tier == TOP_TIER:
        alerts.append(_alert(
            entry, "performance_opportunity", Priority.LOW,
            f"Composite score {result.composite_score:.2f} makes this supplier a candidate for more volume",
            result.composite_score,
            ["Consider consolidating volume with this supplier"],
        ))
    return alerts


# ===== GENERATION =====

def generate_recommendations(entries: Sequence[RankingEntry]) -> List[Recommendation]:
    ranks: Dict[int, int] = {e.supplier_id: e.rank for e in entries}
    items = [item for rule in RECOMMENDATION_RULES for item in rule(entries)]

    def best_rank(item: Recommendation) -> int:
        return min((ranks[i] for i in item.supplier_ids if i in ranks), default=len(ranks) + 1)

    return sorted(items, key=lambda item: (item.priority.order, best_rank(item)))


def generate_alerts(entries: Sequence[RankingEntry]) -> List[Alert]:
    alerts = [(e.rank, alert) for e in entries for alert in supplier_alerts(e)]
    alerts.sort(key=lambda pair: (pair[1].severity.order, pair[0]))
    return [alert for _, alert in alerts]


def build_guidance(entries: Sequence[RankingEntry]) -> Tuple[List[Recommendation], List[Alert]]:
    """Recommendations and alerts for a ranked set. Never raises."""
    try:
        return generate_recommendations(entries), generate_alerts(entries)
    except Exception:
        logger.exception(f"Recommendation generation failed for {len(entries)} ranked suppliers")
        return [], []
