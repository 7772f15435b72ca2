"""Scoring, ranking, trend and recommendation schemas."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from supplier_scoring.schemas.metrics import AnalysisWindow


class ComponentName(str, Enum):
    """The six scored performance dimensions."""
    PRICE = "price"
    DELIVERY = "delivery"
    QUALITY = "quality"
    FULFILLMENT = "fulfillment"
    PAYMENT = "payment"
    RESPONSE = "response"


COMPONENTS = tuple(ComponentName)


class Tier(str, Enum):
    """Performance tier, best first."""
    PREMIUM = "premium"
    PREFERRED = "preferred"
    STANDARD = "standard"
    DEVELOPING = "developing"
    PROBATION = "probation"

    @property
    def order(self) -> int:
        """0 for the best tier, growing as tiers get worse."""
        return list(Tier).index(self)


class RiskLevel(str, Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    NEW_SUPPLIER = "new_supplier"
    INSUFFICIENT_DATA = "insufficient_data"


class Priority(str, Enum):
    """Recommendation priority / alert severity."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def order(self) -> int:
        return list(Priority).index(self)


class WeightProfileName(str, Enum):
    """Named business-priority weight profiles."""
    STANDARD = "standard"
    BALANCED = "balanced"
    COST = "cost"
    QUALITY = "quality"
    DELIVERY = "delivery"
    SERVICE = "service"


# ==================== SCORES ====================

class ComponentScore(BaseModel):
    """One component scorer's output."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0, le=100)
    rationale: str
    neutral: bool = False


class ComponentScoreSet(BaseModel):
    """All six component scores for one supplier, with audit rationale."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(ge=0, le=100)
    delivery: float = Field(ge=0, le=100)
    quality: float = Field(ge=0, le=100)
    fulfillment: float = Field(ge=0, le=100)
    payment: float = Field(ge=0, le=100)
    response: float = Field(ge=0, le=100)
    rationale: Dict[str, str] = Field(default_factory=dict)
    neutral_components: List[str] = Field(default_factory=list)

    @classmethod
    def from_components(cls, components: Dict[ComponentName, ComponentScore]) -> "ComponentScoreSet":
        return cls(
            **{name.value: components[name].score for name in COMPONENTS},
            rationale={name.value: components[name].rationale for name in COMPONENTS},
            neutral_components=[name.value for name in COMPONENTS if components[name].neutral],
        )

    def as_dict(self) -> Dict[str, float]:
        return {name.value: getattr(self, name.value) for name in COMPONENTS}

    def get(self, component: ComponentName) -> float:
        return getattr(self, component.value)

    @property
    def all_neutral(self) -> bool:
        return len(self.neutral_components) == len(COMPONENTS)


class WeightProfile(BaseModel):
    """Resolved per-component weights summing to 1.0."""

    model_config = ConfigDict(frozen=True)

    name: str
    weights: Dict[ComponentName, float]
    warnings: List[str] = Field(default_factory=list)

    def weight(self, component: ComponentName) -> float:
        return self.weights.get(component, 0.0)


class SupplierIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    supplier_id: int
    code: str = ""
    name: str = ""
    category: Optional[str] = None


class SupplierScoreResult(BaseModel):
    """Full scoring outcome for one supplier in one window."""

    model_config = ConfigDict(frozen=True)

    supplier: SupplierIdentity
    window: AnalysisWindow
    scores: ComponentScoreSet
    weight_profile: WeightProfile
    composite_score: float = Field(ge=0, le=100)
    tier: Tier
    risk_level: RiskLevel
    risk_factors: List[str] = Field(default_factory=list)
    critical_components: List[str] = Field(default_factory=list)
    order_count: int = 0
    total_value: float = 0.0
    # Below the minimum transaction count; transaction-derived components are neutral
    insufficient_data: bool = False

    @property
    def supplier_id(self) -> int:
        return self.supplier.supplier_id


# ==================== RANKING ====================

class RankingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: SupplierScoreResult
    rank: int = Field(ge=1)
    percentile: int = Field(ge=0, le=100)

    @property
    def supplier_id(self) -> int:
        return self.result.supplier_id

    @property
    def composite_score(self) -> float:
        return self.result.composite_score

    @property
    def tier(self) -> Tier:
        return self.result.tier


class TierDistributionRow(BaseModel):
    tier: Tier
    count: int
    percentage: float
    average_score: float


class RankingSummary(BaseModel):
    total_suppliers: int
    average_score: float
    median_score: float
    max_score: float
    min_score: float
    performance_threshold: Optional[float] = None
    suppliers_above_threshold: Optional[int] = None
    weights_used: Dict[ComponentName, float]


class RankingOptions(BaseModel):
    """Caller options for a ranking request."""

    weight_profile: Optional[str] = None
    custom_weights: Optional[Dict[str, float]] = None
    min_transactions: Optional[int] = Field(default=None, ge=0)
    supplier_ids: Optional[List[int]] = None
    performance_threshold: Optional[float] = Field(default=None, ge=0, le=100)


# ==================== TRENDS ====================

class TrendRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    supplier: SupplierIdentity
    current_rank: Optional[int] = None
    current_score: Optional[float] = None
    current_tier: Optional[Tier] = None
    previous_rank: Optional[int] = None
    previous_score: Optional[float] = None
    previous_tier: Optional[Tier] = None
    rank_delta: Optional[int] = None
    score_delta: Optional[float] = None
    direction: TrendDirection
    note: Optional[str] = None


# ==================== RECOMMENDATIONS ====================

class Recommendation(BaseModel):
    type: str
    priority: Priority
    title: str
    message: str
    supplier_ids: List[int] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)


class Alert(BaseModel):
    type: str
    severity: Priority
    supplier_id: int
    supplier_name: str = ""
    message: str
    value: Optional[float] = None
    actions: List[str] = Field(default_factory=list)


# ==================== REPORTS ====================

class RankingReport(BaseModel):
    """Result of a ranking request."""

    window: AnalysisWindow
    weight_profile: WeightProfile
    rankings: List[RankingEntry] = Field(default_factory=list)
    tier_distribution: List[TierDistributionRow] = Field(default_factory=list)
    summary: Optional[RankingSummary] = None
    recommendations: List[Recommendation] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    excluded_supplier_ids: List[int] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def entry_for(self, supplier_id: int) -> Optional[RankingEntry]:
        for entry in self.rankings:
            if entry.supplier_id == supplier_id:
                return entry
        return None


class ComparisonReport(BaseModel):
    window: AnalysisWindow
    weight_profile: WeightProfile
    entries: List[RankingEntry] = Field(default_factory=list)
    best_in_category: Dict[str, int] = Field(default_factory=dict)
    category_averages: Dict[str, float] = Field(default_factory=dict)
    top_performer: Optional[int] = None
    at_risk_supplier_ids: List[int] = Field(default_factory=list)
    missing_supplier_ids: List[int] = Field(default_factory=list)
