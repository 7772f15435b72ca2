"""Tests for the SQL and in-memory metrics providers."""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from supplier_scoring.core.config import Settings
from supplier_scoring.core.exceptions import MetricsProviderUnavailableError
from supplier_scoring.db.session import build_engine, build_session_factory
from supplier_scoring.models.supplier import Supplier, SupplierTransaction, TransactionStatus, TransactionType
from supplier_scoring.schemas.metrics import QualityDetail
from supplier_scoring.services.supplier_performance.metrics_provider import SqlMetricsProvider
from supplier_scoring.services.supplier_performance_service import SupplierPerformanceService


def purchase(supplier, created, amount, product, status=TransactionStatus.COMPLETED,
             expected=None, delivered=None, completed=None):
    return SupplierTransaction(
        supplier=supplier,
        product_code=product,
        transaction_type=TransactionType.PURCHASE,
        status=status,
        amount=Decimal(str(amount)),
        created_at=created,
        expected_delivery_at=expected,
        delivered_at=delivered,
        completed_at=completed,
    )


@pytest.fixture
async def store(db_session: AsyncSession):
    """Three suppliers with Q1 2024 activity."""
    acme = Supplier(
        code="ACME", name="Acme Foods", category="produce",
        payment_term_days=30, credit_limit=Decimal("20000"), payment_methods="card, bank",
        early_payment_discount=True,
    )
    dormant = Supplier(code="BETA", name="Beta Supplies", is_active=False)
    small = Supplier(code="GAMMA", name="Gamma Dairy", category="dairy")
    db_session.add_all([acme, dormant, small])

    db_session.add_all([
        purchase(acme, datetime(2024, 1, 10), 100, "A",
                 expected=datetime(2024, 1, 12), delivered=datetime(2024, 1, 12),
                 completed=datetime(2024, 1, 11)),
        purchase(acme, datetime(2024, 1, 20), 300, "B", status=TransactionStatus.PARTIAL,
                 expected=datetime(2024, 1, 22), delivered=datetime(2024, 1, 25),
                 completed=datetime(2024, 1, 22)),
        purchase(acme, datetime(2024, 1, 30), 200, "A", status=TransactionStatus.CANCELLED),
        SupplierTransaction(supplier=acme, transaction_type=TransactionType.RETURN,
                            amount=Decimal("50"), created_at=datetime(2024, 2, 1)),
        SupplierTransaction(supplier=acme, transaction_type=TransactionType.COMPLAINT,
                            amount=Decimal("0"), created_at=datetime(2024, 2, 2)),
        # Outside the window
        purchase(acme, datetime(2023, 12, 31), 999, "Z"),
        purchase(dormant, datetime(2024, 1, 15), 400, "C"),
        purchase(small, datetime(2024, 3, 31, 23, 59), 80, "D"),
    ])
    await db_session.commit()
    return {"acme": acme, "dormant": dormant, "small": small}


class TestSqlMetricsProvider:

    async def test_snapshot_aggregates(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        snapshots = {s.supplier_code: s for s in await provider.get_supplier_metrics(window)}

        acme = snapshots["ACME"]
        assert acme.order_count == 3
        assert acme.total_value == 600.0
        assert acme.average_order_value == pytest.approx(200.0)
        assert acme.unique_products == 2
        assert acme.average_order_interval_days == pytest.approx(10.0)
        assert acme.average_response_hours == pytest.approx(36.0)
        assert (acme.return_count, acme.adjustment_count, acme.defect_count) == (1, 0, 1)
        assert (acme.completed_count, acme.partial_count, acme.cancelled_count) == (1, 1, 1)
        assert acme.payment_term_days == 30
        assert acme.credit_limit == 20000.0
        assert acme.payment_methods == ["card", "bank"]
        assert acme.early_payment_discount is True

    async def test_delivery_statistics(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        acme = next(s for s in await provider.get_supplier_metrics(window) if s.supplier_code == "ACME")
        assert acme.delivery.total_count == 2
        assert acme.delivery.on_time_count == 1
        assert acme.delivery.mean_delay_days == pytest.approx(1.5)
        assert acme.delivery.delay_std_days == pytest.approx(1.5)

    async def test_inactive_suppliers_skipped(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        codes = [s.supplier_code for s in await provider.get_supplier_metrics(window)]
        assert codes == ["ACME", "GAMMA"]

    async def test_min_transactions_filter(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        snapshots = await provider.get_supplier_metrics(window, min_transactions=2)
        assert [s.supplier_code for s in snapshots] == ["ACME"]

    async def test_supplier_ids_filter(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        snapshots = await provider.get_supplier_metrics(window, supplier_ids=[store["small"].id])
        assert [s.supplier_code for s in snapshots] == ["GAMMA"]
        assert snapshots[0].average_order_interval_days is None

    async def test_delivery_detail(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        records = await provider.get_delivery_detail(store["acme"].id, window)
        assert [r.delay_days for r in records] == [0.0, 3.0]

    async def test_quality_detail(self, session_factory, store, window):
        provider = SqlMetricsProvider(session_factory)
        detail = await provider.get_quality_detail(store["acme"].id, window)
        assert detail == QualityDetail(transaction_count=3, return_count=1, adjustment_count=0, defect_count=1)

    async def test_get_supplier(self, session_factory, store):
        provider = SqlMetricsProvider(session_factory)
        identity = await provider.get_supplier(store["acme"].id)
        assert identity.name == "Acme Foods"
        assert identity.category == "produce"
        assert await provider.get_supplier(9999) is None

    async def test_concurrent_detail_fetches(self, session_factory, store, window):
        """Detail queries fanned out together each run on their own session."""
        provider = SqlMetricsProvider(session_factory)
        acme_id, small_id = store["acme"].id, store["small"].id
        delivery, quality, other = await asyncio.gather(
            provider.get_delivery_detail(acme_id, window),
            provider.get_quality_detail(acme_id, window),
            provider.get_quality_detail(small_id, window),
        )
        assert len(delivery) == 2
        assert quality.return_count == 1
        assert other.transaction_count == 1

    async def test_database_errors_are_wrapped(self, tmp_path, window):
        engine = build_engine(Settings(_env_file=None, database_url=f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}"))
        provider = SqlMetricsProvider(build_session_factory(engine))
        with pytest.raises(MetricsProviderUnavailableError) as exc_info:
            await provider.get_supplier_metrics(window)
        await engine.dispose()
        assert exc_info.value.retryable
        assert exc_info.value.operation == "get_supplier_metrics"

    async def test_ranked_end_to_end(self, session_factory, store, window, test_settings):
        service = SupplierPerformanceService(SqlMetricsProvider(session_factory), config=test_settings)
        report = await service.rank_suppliers(window)
        assert {e.result.supplier.code for e in report.rankings} == {"ACME", "GAMMA"}
        acme = next(e for e in report.rankings if e.result.supplier.code == "ACME")
        assert acme.result.scores.fulfillment == pytest.approx(40.0)


class TestInMemoryMetricsProvider:

    async def test_failures_scoped_to_supplier(self, provider, window):
        provider.fail_on("get_quality_detail", RuntimeError("boom"), supplier_id=1)
        with pytest.raises(RuntimeError):
            await provider.get_quality_detail(1, window)
        assert await provider.get_quality_detail(2, window) is None

    async def test_failures_scoped_to_window(self, provider, window, make_snapshot):
        provider.add_snapshot(window, make_snapshot(1))
        provider.fail_on("get_supplier_metrics", RuntimeError("boom"), window=window.previous())
        assert len(await provider.get_supplier_metrics(window)) == 1
        with pytest.raises(RuntimeError):
            await provider.get_supplier_metrics(window.previous())

    async def test_min_transactions(self, provider, window, make_snapshot):
        provider.add_snapshots(window, [make_snapshot(1, order_count=2), make_snapshot(2)])
        snapshots = await provider.get_supplier_metrics(window, min_transactions=5)
        assert [s.supplier_id for s in snapshots] == [2]


class TestSessionFactory:

    async def test_sqlite_foreign_keys_enforced(self, db_session):
        assert (await db_session.execute(text("PRAGMA foreign_keys"))).scalar() == 1

    async def test_committed_rows_readable_after_session_closes(self, session_factory, window):
        async with session_factory() as session:
            supplier = Supplier(code="DELTA", name="Delta Meats")
            session.add_all([supplier, purchase(supplier, datetime(2024, 2, 1), 120, "M")])
            await session.commit()
        assert supplier.code == "DELTA"

        snapshots = await SqlMetricsProvider(session_factory).get_supplier_metrics(window)
        assert [s.supplier_code for s in snapshots] == ["DELTA"]
        assert snapshots[0].supplier_id == supplier.id
