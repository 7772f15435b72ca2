"""Tests for composite scoring, tiers and risk."""

import pytest

from supplier_scoring.core.config import Settings
from supplier_scoring.schemas.scoring import (
    ComponentName,
    ComponentScore,
    ComponentScoreSet,
    RiskLevel,
    Tier,
)
from supplier_scoring.services.supplier_performance.classification import (
    assess_risk,
    build_score_result,
    classify_tier,
    composite_score,
    critical_components,
)
from supplier_scoring.services.supplier_performance.scorers import score_components
from supplier_scoring.services.supplier_performance.weights import resolve_weight_profile


def score_set(**overrides) -> ComponentScoreSet:
    values = {name.value: 80.0 for name in ComponentName}
    values.update(overrides)
    return ComponentScoreSet(**values)


class TestCompositeScore:

    def test_weighted_sum(self, test_settings):
        profile = resolve_weight_profile("standard", config=test_settings)
        scores = score_set(price=100.0, delivery=60.0, quality=50.0, fulfillment=40.0, payment=0.0, response=90.0)
        assert composite_score(scores, profile) == pytest.approx(30.0 + 15.0 + 10.0 + 6.0 + 0.0 + 9.0)

    def test_uniform_scores_give_same_composite(self, test_settings):
        profile = resolve_weight_profile("service", config=test_settings)
        assert composite_score(score_set(), profile) == pytest.approx(80.0)

    def test_heavier_weight_moves_composite_toward_component(self, test_settings):
        scores = score_set(quality=20.0)
        base = resolve_weight_profile(custom_weights={n.value: 1.0 for n in ComponentName}, config=test_settings)
        heavier = resolve_weight_profile(
            custom_weights={**{n.value: 1.0 for n in ComponentName}, "quality": 2.0}, config=test_settings,
        )
        assert composite_score(scores, heavier) < composite_score(scores, base)


class TestTierClassifier:

    @pytest.mark.parametrize("composite,expected", [
        (85.0, Tier.PREMIUM),
        (84.99, Tier.PREFERRED),
        (70.0, Tier.PREFERRED),
        (55.0, Tier.STANDARD),
        (40.0, Tier.DEVELOPING),
        (39.99, Tier.PROBATION),
    ])
    def test_band_lower_bounds_are_inclusive(self, composite, expected, test_settings):
        assert classify_tier(composite, score_set(), test_settings) == expected

    def test_critical_component_forces_probation(self, test_settings):
        scores = score_set(quality=10.0)
        assert critical_components(scores, test_settings) == ["quality"]
        assert classify_tier(95.0, scores, test_settings) == Tier.PROBATION

    def test_floor_is_configurable(self):
        config = Settings(_env_file=None, critical_component_floor=5.0)
        assert classify_tier(95.0, score_set(quality=10.0), config) == Tier.PREMIUM

    def test_tier_monotonic_in_composite(self, test_settings):
        scores = score_set()
        tiers = [classify_tier(c, scores, test_settings) for c in range(0, 101)]
        orders = [tier.order for tier in tiers]
        assert orders == sorted(orders, reverse=True)


class TestRiskAssessor:

    def test_minimal_risk(self, test_settings):
        assert assess_risk(score_set(), 5000.0, test_settings) == (RiskLevel.MINIMAL, [])

    @pytest.mark.parametrize("overrides,value,expected", [
        ({"quality": 59.0}, 5000.0, RiskLevel.LOW),
        ({"quality": 59.0, "delivery": 59.0}, 5000.0, RiskLevel.MEDIUM),
        ({"quality": 59.0, "delivery": 59.0}, 500.0, RiskLevel.HIGH),
        ({"fulfillment": 69.0, "delivery": 10.0, "quality": 10.0}, 500.0, RiskLevel.HIGH),
    ])
    def test_levels_follow_factor_count(self, overrides, value, expected, test_settings):
        level, _ = assess_risk(score_set(**overrides), value, test_settings)
        assert level == expected

    def test_factors_named(self, test_settings):
        _, factors = assess_risk(score_set(fulfillment=69.0), 0.0, test_settings)
        assert factors == ["weak_fulfillment", "low_volume"]

    def test_thresholds_are_strict(self, test_settings):
        level, _ = assess_risk(score_set(quality=60.0, delivery=60.0, fulfillment=70.0), 1000.0, test_settings)
        assert level == RiskLevel.MINIMAL


class TestBuildScoreResult:

    def test_rationale_and_neutral_flags_kept(self, make_snapshot, window, test_settings):
        snapshot = make_snapshot(1, average_response_hours=None)
        components = score_components(snapshot, 1000.0, config=test_settings)
        result = build_score_result(
            snapshot, window, components, resolve_weight_profile(config=test_settings), test_settings,
        )
        assert result.scores.neutral_components == ["response"]
        assert set(result.scores.rationale) == {n.value for n in ComponentName}
        assert result.supplier.code == "SUP-001"
        assert result.window == window

    def test_neutral_component_overrides_are_reflected(self, make_snapshot, window, test_settings):
        snapshot = make_snapshot(1)
        components = score_components(snapshot, 1000.0, config=test_settings)
        components[ComponentName.QUALITY] = ComponentScore(score=5.0, rationale="forced")
        result = build_score_result(
            snapshot, window, components, resolve_weight_profile(config=test_settings), test_settings,
        )
        assert result.tier == Tier.PROBATION
        assert result.critical_components == ["quality"]
