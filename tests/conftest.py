"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from supplier_scoring.core.cache import ResultCache, SimpleCache
from supplier_scoring.core.config import Settings
from supplier_scoring.db.base import Base
from supplier_scoring.db.session import build_engine, build_session_factory
# Import all models to ensure they're registered with Base.metadata
from supplier_scoring.models import *  # noqa: F401,F403
from supplier_scoring.schemas.metrics import AnalysisWindow, DeliveryStats, SupplierMetricsSnapshot
from supplier_scoring.schemas.scoring import (
    ComponentName,
    ComponentScoreSet,
    RiskLevel,
    SupplierIdentity,
    SupplierScoreResult,
    Tier,
    WeightProfile,
)
from supplier_scoring.services.supplier_performance.metrics_provider import InMemoryMetricsProvider
from supplier_scoring.services.supplier_performance.weights import resolve_weight_profile
from supplier_scoring.services.supplier_performance_service import SupplierPerformanceService

SQLITE_TEMPLATE = "sqlite+aiosqlite:///{path}"


@pytest.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite store so concurrent sessions get their own connections."""
    engine = build_engine(Settings(_env_file=None, database_url=SQLITE_TEMPLATE.format(path=tmp_path / "store.db")))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session used to seed the store."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings() -> Settings:
    """Settings with library defaults, independent of the environment."""
    return Settings(_env_file=None, redis_url=None, min_transactions=1)


@pytest.fixture
def window() -> AnalysisWindow:
    """Q1 2024."""
    return AnalysisWindow(
        start=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end=datetime(2024, 4, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def make_snapshot() -> Callable[..., SupplierMetricsSnapshot]:
    """Factory for a healthy supplier snapshot; keyword arguments override fields."""
    def _make(supplier_id: int, **overrides) -> SupplierMetricsSnapshot:
        fields = dict(
            supplier_id=supplier_id,
            supplier_code=f"SUP-{supplier_id:03d}",
            supplier_name=f"Supplier {supplier_id}",
            category="produce",
            order_count=50,
            total_value=50000.0,
            unique_products=20,
            average_order_interval_days=5.0,
            average_response_hours=12.0,
            delivery=DeliveryStats(total_count=50, on_time_count=48, mean_delay_days=-1.0, delay_std_days=0.5),
            payment_term_days=45,
            early_payment_discount=True,
        )
        fields.update(overrides)
        return SupplierMetricsSnapshot(**fields)

    return _make


@pytest.fixture
def provider() -> InMemoryMetricsProvider:
    return InMemoryMetricsProvider()


@pytest.fixture
def cache(test_settings) -> ResultCache:
    return ResultCache(SimpleCache(max_entries=100), ttl_seconds=test_settings.cache_ttl_seconds)


@pytest.fixture
def service(provider, cache, test_settings) -> SupplierPerformanceService:
    """Scoring service over the in-memory provider."""
    return SupplierPerformanceService(provider, cache=cache, config=test_settings)


@pytest.fixture
def profile(test_settings) -> WeightProfile:
    return resolve_weight_profile(config=test_settings)


@pytest.fixture
def make_result(window, profile) -> Callable[..., SupplierScoreResult]:
    """Factory for a scored supplier whose six components all equal its composite."""
    def _make(
        supplier_id: int,
        composite: float,
        tier: Tier = Tier.STANDARD,
        risk_level: RiskLevel = RiskLevel.MINIMAL,
        **scores,
    ) -> SupplierScoreResult:
        values = {name.value: composite for name in ComponentName}
        values.update(scores)
        return SupplierScoreResult(
            supplier=SupplierIdentity(supplier_id=supplier_id, name=f"Supplier {supplier_id}"),
            window=window,
            scores=ComponentScoreSet(**values),
            weight_profile=profile,
            composite_score=composite,
            tier=tier,
            risk_level=risk_level,
        )
    return _make
