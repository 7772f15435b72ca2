"""Composite scoring, tier classification and risk assessment."""

from typing import Dict, List, Optional, Tuple

from supplier_scoring.core.config import Settings, settings as default_settings
from supplier_scoring.schemas.metrics import AnalysisWindow, SupplierMetricsSnapshot
from supplier_scoring.schemas.scoring import (
    COMPONENTS,
    ComponentName,
    ComponentScore,
    ComponentScoreSet,
    RiskLevel,
    SupplierIdentity,
    SupplierScoreResult,
    Tier,
    WeightProfile,
)
from supplier_scoring.services.supplier_performance import thresholds as t
from supplier_scoring.services.supplier_performance.thresholds import clamp_score, lookup_at_least


def composite_score(scores: ComponentScoreSet, profile: WeightProfile) -> float:
    """Weighted sum of the component scores."""
    total = sum(scores.get(name) * profile.weight(name) for name in COMPONENTS)
    return clamp_score(total)


def critical_components(scores: ComponentScoreSet, config: Optional[Settings] = None) -> List[str]:
    """Components scoring below the hard floor."""
    config = config or default_settings
    return [
        name.value for name in COMPONENTS
        if scores.get(name) < config.critical_component_floor
    ]


def classify_tier(composite: float, scores: ComponentScoreSet, config: Optional[Settings] = None) -> Tier:
    """Tier from composite score; any critical component forces Probation."""
    if critical_components(scores, config):
        return Tier.PROBATION
    return Tier(lookup_at_least(composite, t.TIER_BANDS, Tier.PROBATION.value))


def risk_factors(
    scores: ComponentScoreSet,
    total_value: float,
    config: Optional[Settings] = None,
) -> List[str]:
    config = config or default_settings
    factors = []
    if scores.quality < t.QUALITY_RISK_THRESHOLD:
        factors.append("low_quality")
    if scores.delivery < t.DELIVERY_RISK_THRESHOLD:
        factors.append("poor_delivery")
    if scores.fulfillment < t.FULFILLMENT_RISK_THRESHOLD:
        factors.append("weak_fulfillment")
    if total_value < config.minimum_volume_floor:
        factors.append("low_volume")
    return factors


def assess_risk(
    scores: ComponentScoreSet,
    total_value: float,
    config: Optional[Settings] = None,
) -> Tuple[RiskLevel, List[str]]:
    """Risk level from the number of risk factors present."""
    factors = risk_factors(scores, total_value, config)
    level = lookup_at_least(len(factors), t.RISK_FACTOR_LEVELS, RiskLevel.MINIMAL.value)
    return RiskLevel(level), factors


def build_score_result(
    snapshot: SupplierMetricsSnapshot,
    window: AnalysisWindow,
    components: Dict[ComponentName, ComponentScore],
    profile: WeightProfile,
    config: Optional[Settings] = None,
    insufficient_data: bool = False,
) -> SupplierScoreResult:
    """Combine component scores into a classified result."""
    scores = ComponentScoreSet.from_components(components)
    composite = composite_score(scores, profile)
    level, factors = assess_risk(scores, snapshot.total_value, config)

    return SupplierScoreResult(
        supplier=SupplierIdentity(
            supplier_id=snapshot.supplier_id,
            code=snapshot.supplier_code,
            name=snapshot.supplier_name,
            category=snapshot.category,
        ),
        window=window,
        scores=scores,
        weight_profile=profile,
        composite_score=composite,
        tier=classify_tier(composite, scores, config),
        risk_level=level,
        risk_factors=factors,
        critical_components=critical_components(scores, config),
        order_count=snapshot.order_count,
        total_value=round(snapshot.total_value, 2),
        insufficient_data=insufficient_data,
    )
