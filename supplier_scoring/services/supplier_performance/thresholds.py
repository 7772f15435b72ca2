"""Declarative threshold tables and the lookups that evaluate them.

Every banded rule in the pipeline is an ordered list of ``(bound, value)``
pairs. Keep each table sorted in the direction its lookup expects.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence, Tuple, TypeVar

T = TypeVar("T")

Table = Sequence[Tuple[float, T]]


def lookup_at_least(value: float, table: Table, default: T) -> T:
    """First row whose bound is <= value. Table sorted by bound, descending."""
    for bound, result in table:
        if value >= bound:
            return result
    return default


def lookup_at_most(value: float, table: Table, default: T) -> T:
    """First row whose bound is >= value. Table sorted by bound, ascending."""
    for bound, result in table:
        if value <= bound:
            return result
    return default


def lookup_above(value: float, table: Table, default: T) -> T:
    """First row whose bound is strictly < value. Table sorted by bound, descending."""
    for bound, result in table:
        if value > bound:
            return result
    return default


def clamp_score(value: float) -> float:
    """Clamp to [0, 100] and round to 2 decimals."""
    return round(min(100.0, max(0.0, value)), 2)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ==================== PRICE ====================

# Supplier average order value / peer mean
PRICE_RATIO_BANDS = [
    (0.80, 100.0),
    (0.90, 85.0),
    (1.00, 75.0),
    (1.10, 60.0),
    (1.20, 40.0),
]
PRICE_RATIO_FLOOR = 20.0

# ==================== DELIVERY ====================

ON_TIME_RATE_POINTS = [
    (95.0, 60.0),
    (90.0, 50.0),
    (80.0, 40.0),
    (70.0, 30.0),
]
ON_TIME_RATE_FLOOR = 20.0

AVERAGE_DELAY_POINTS = [
    (0.0, 25.0),
    (1.0, 20.0),
    (3.0, 15.0),
    (7.0, 10.0),
]
AVERAGE_DELAY_FLOOR = 5.0

DELAY_CONSISTENCY_POINTS = [
    (1.0, 15.0),
    (2.0, 12.0),
    (4.0, 8.0),
    (7.0, 5.0),
]
DELAY_CONSISTENCY_FLOOR = 2.0
DELAY_CONSISTENCY_UNKNOWN = 8.0

# ==================== QUALITY ====================

# Rate in percent of orders -> points deducted
RETURN_RATE_PENALTIES = [
    (10.0, 40.0),
    (5.0, 25.0),
    (2.0, 15.0),
    (1.0, 10.0),
    (0.5, 5.0),
]
ADJUSTMENT_RATE_PENALTIES = [
    (10.0, 20.0),
    (5.0, 15.0),
    (2.0, 10.0),
    (1.0, 5.0),
    (0.5, 3.0),
]
ZERO_ISSUE_BONUS = 10.0
ZERO_ISSUE_MIN_TRANSACTIONS = 10

# ==================== RELIABILITY ====================

RELIABILITY_BASE = 70.0
TRANSACTION_FREQUENCY_POINTS = [
    (50, 25.0),
    (20, 20.0),
    (10, 15.0),
    (5, 10.0),
]
TRANSACTION_FREQUENCY_FLOOR = 5.0

ORDER_INTERVAL_POINTS = [
    (7.0, 25.0),
    (14.0, 20.0),
    (30.0, 15.0),
    (60.0, 10.0),
]
ORDER_INTERVAL_FLOOR = 5.0

PRODUCT_DIVERSITY_POINTS = [
    (20, 10.0),
    (10, 7.0),
    (5, 5.0),
    (1, 2.0),
]
BUSINESS_VOLUME_BONUS = 5.0

# Order-fulfillment variant
PARTIAL_FULFILLMENT_CREDIT = 0.5
CANCELLATION_PENALTY_FACTOR = 30.0
FULFILLMENT_CONSISTENCY_RATE = 95.0
FULFILLMENT_CONSISTENCY_MIN_ORDERS = 10
FULFILLMENT_CONSISTENCY_BONUS = 5.0

# ==================== PAYMENT ====================

PAYMENT_BASE = 50.0
PAYMENT_TERM_POINTS = [
    (60, 30.0),
    (45, 25.0),
    (30, 20.0),
    (15, 15.0),
]
PAYMENT_TERM_FLOOR = 10.0
EARLY_PAYMENT_DISCOUNT_BONUS = 15.0
CREDIT_LIMIT_POINTS = [
    (100_000, 10.0),
    (50_000, 7.0),
    (10_000, 5.0),
]
ANY_CREDIT_LIMIT_POINTS = 3.0
PAYMENT_METHOD_POINTS = [
    (3, 5.0),
    (2, 3.0),
]

# ==================== RESPONSE ====================

# Days from placement to completion
RESPONSE_DAYS_SCORES = [
    (1.0, 100.0),
    (2.0, 90.0),
    (5.0, 75.0),
    (10.0, 60.0),
]
RESPONSE_DECAY_PER_DAY = 5.0
RESPONSE_FLOOR = 30.0

# ==================== CLASSIFICATION ====================

TIER_BANDS = [
    (85.0, "premium"),
    (70.0, "preferred"),
    (55.0, "standard"),
    (40.0, "developing"),
]

QUALITY_RISK_THRESHOLD = 60.0
DELIVERY_RISK_THRESHOLD = 60.0
FULFILLMENT_RISK_THRESHOLD = 70.0

RISK_FACTOR_LEVELS = [
    (3, "high"),
    (2, "medium"),
    (1, "low"),
]
