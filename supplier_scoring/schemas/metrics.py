"""Metrics snapshot schemas consumed by the scoring pipeline."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


WINDOW_PRESETS = {
    "last_30_days": 30,
    "last_60_days": 60,
    "last_90_days": 90,
    "last_180_days": 180,
    "last_year": 365,
}


class AnalysisWindow(BaseModel):
    """Half-open analysis window ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_bounds(self) -> "AnalysisWindow":
        if self.end <= self.start:
            raise ValueError(f"Window end {self.end} must be after start {self.start}")
        return self

    @classmethod
    def last(cls, days: int, now: Optional[datetime] = None) -> "AnalysisWindow":
        """Trailing window of ``days`` ending at ``now``."""
        if days <= 0:
            raise ValueError("days must be positive")
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    @classmethod
    def from_preset(cls, preset: str, now: Optional[datetime] = None) -> "AnalysisWindow":
        """Build a window from a named range such as ``last_90_days``."""
        if preset not in WINDOW_PRESETS:
            raise ValueError(f"Unknown date range preset: {preset}")
        return cls.last(WINDOW_PRESETS[preset], now=now)

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    @property
    def days(self) -> float:
        return self.length.total_seconds() / 86400

    def previous(self) -> "AnalysisWindow":
        """The adjacent window of equal length ending where this one starts."""
        return AnalysisWindow(start=self.start - self.length, end=self.start)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


class DeliveryRecord(BaseModel):
    """Expected vs. actual delivery of a single transaction."""

    model_config = ConfigDict(frozen=True)

    expected_at: datetime
    delivered_at: datetime

    @property
    def delay_days(self) -> float:
        """Positive when late, negative when early."""
        return (self.delivered_at - self.expected_at).total_seconds() / 86400


class DeliveryStats(BaseModel):
    """Pre-aggregated delivery statistics."""

    model_config = ConfigDict(frozen=True)

    total_count: int = Field(ge=0)
    on_time_count: int = Field(ge=0)
    mean_delay_days: Optional[float] = None
    delay_std_days: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_counts(self) -> "DeliveryStats":
        if self.on_time_count > self.total_count:
            raise ValueError("on_time_count cannot exceed total_count")
        return self

    @property
    def on_time_rate(self) -> Optional[float]:
        if self.total_count == 0:
            return None
        return self.on_time_count / self.total_count * 100


class QualityDetail(BaseModel):
    """Return and adjustment counts for one supplier and window."""

    model_config = ConfigDict(frozen=True)

    transaction_count: int = Field(ge=0)
    return_count: int = Field(default=0, ge=0)
    adjustment_count: int = Field(default=0, ge=0)
    defect_count: int = Field(default=0, ge=0)


class SupplierMetricsSnapshot(BaseModel):
    """Aggregated transactional facts for one supplier over one window."""

    model_config = ConfigDict(frozen=True)

    # Identity
    supplier_id: int
    supplier_code: str = ""
    supplier_name: str = ""
    category: Optional[str] = None

    # Transaction volume
    order_count: int = Field(default=0, ge=0)
    total_value: float = Field(default=0.0, ge=0)
    average_order_value: Optional[float] = Field(default=None, ge=0)
    unique_products: int = Field(default=0, ge=0)

    # Timing
    average_order_interval_days: Optional[float] = Field(default=None, ge=0)
    first_transaction_at: Optional[datetime] = None
    last_transaction_at: Optional[datetime] = None
    average_response_hours: Optional[float] = Field(default=None, ge=0)

    # Quality indicators
    return_count: int = Field(default=0, ge=0)
    adjustment_count: int = Field(default=0, ge=0)
    defect_count: int = Field(default=0, ge=0)

    # Delivery indicators
    delivery: Optional[DeliveryStats] = None

    # Order status breakdown, when the store tracks fulfillment
    completed_count: Optional[int] = Field(default=None, ge=0)
    partial_count: Optional[int] = Field(default=None, ge=0)
    cancelled_count: Optional[int] = Field(default=None, ge=0)

    # Commercial terms
    payment_term_days: Optional[int] = Field(default=None, ge=0)
    credit_limit: Optional[float] = Field(default=None, ge=0)
    payment_methods: List[str] = Field(default_factory=list)
    early_payment_discount: Optional[bool] = None

    @property
    def mean_order_value(self) -> Optional[float]:
        """Average order value, derived from the totals when not supplied."""
        if self.average_order_value is not None:
            return self.average_order_value
        if self.order_count > 0:
            return self.total_value / self.order_count
        return None

    @property
    def has_status_breakdown(self) -> bool:
        return self.completed_count is not None and self.cancelled_count is not None

    @property
    def has_commercial_terms(self) -> bool:
        return (
            self.payment_term_days is not None
            or self.credit_limit is not None
            or bool(self.payment_methods)
            or self.early_payment_discount is not None
        )
