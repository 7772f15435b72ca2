"""
Metrics provider boundary.

The scoring engine never queries storage directly; it asks a
``MetricsProvider`` for per-window snapshots and per-supplier detail. Two
implementations ship here: ``SqlMetricsProvider`` aggregates the transaction
store through SQLAlchemy, ``InMemoryMetricsProvider`` serves synthetic data.
"""

import logging
import statistics
from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supplier_scoring.core.exceptions import MetricsProviderUnavailableError
from supplier_scoring.models.supplier import (
    Supplier,
    SupplierTransaction,
    TransactionStatus,
    TransactionType,
)
from supplier_scoring.schemas.metrics import (
    AnalysisWindow,
    DeliveryRecord,
    DeliveryStats,
    QualityDetail,
    SupplierMetricsSnapshot,
)
from supplier_scoring.schemas.scoring import SupplierIdentity

logger = logging.getLogger(__name__)


class MetricsProvider(ABC):
    """Source of aggregated supplier transaction statistics."""

    @abstractmethod
    async def get_supplier_metrics(
        self,
        window: AnalysisWindow,
        supplier_ids: Optional[List[int]] = None,
        min_transactions: int = 0,
    ) -> List[SupplierMetricsSnapshot]:
        """Snapshots for every supplier with at least ``min_transactions`` orders."""

    @abstractmethod
    async def get_delivery_detail(self, supplier_id: int, window: AnalysisWindow) -> List[DeliveryRecord]:
        """Expected vs. actual delivery per transaction."""

    @abstractmethod
    async def get_quality_detail(self, supplier_id: int, window: AnalysisWindow) -> Optional[QualityDetail]:
        """Return/adjustment counts, or None when the snapshot counts should be used."""

    @abstractmethod
    async def get_supplier(self, supplier_id: int) -> Optional[SupplierIdentity]:
        """Identity of a known supplier, None when unknown."""


# ==================== IN-MEMORY ====================

class InMemoryMetricsProvider(MetricsProvider):
    """Provider over synthetic snapshots registered per window."""

    def __init__(self):
        self._snapshots: Dict[AnalysisWindow, Dict[int, SupplierMetricsSnapshot]] = defaultdict(dict)
        self._deliveries: Dict[Tuple[int, AnalysisWindow], List[DeliveryRecord]] = {}
        self._quality: Dict[Tuple[int, AnalysisWindow], QualityDetail] = {}
        self._suppliers: Dict[int, SupplierIdentity] = {}
        self._failures: Dict[Tuple[str, Optional[int], Optional[AnalysisWindow]], Exception] = {}
        self.calls: Counter = Counter()

    def add_snapshot(self, window: AnalysisWindow, snapshot: SupplierMetricsSnapshot) -> None:
        self._snapshots[window][snapshot.supplier_id] = snapshot
        self._suppliers.setdefault(snapshot.supplier_id, SupplierIdentity(
            supplier_id=snapshot.supplier_id,
            code=snapshot.supplier_code,
            name=snapshot.supplier_name,
            category=snapshot.category,
        ))

    def add_snapshots(self, window: AnalysisWindow, snapshots: Iterable[SupplierMetricsSnapshot]) -> None:
        for snapshot in snapshots:
            self.add_snapshot(window, snapshot)

    def add_supplier(self, identity: SupplierIdentity) -> None:
        self._suppliers[identity.supplier_id] = identity

    def add_delivery_records(self, supplier_id: int, window: AnalysisWindow, records: List[DeliveryRecord]) -> None:
        self._deliveries[(supplier_id, window)] = list(records)

    def add_quality_detail(self, supplier_id: int, window: AnalysisWindow, detail: QualityDetail) -> None:
        self._quality[(supplier_id, window)] = detail

    def fail_on(
        self,
        operation: str,
        error: Exception,
        supplier_id: Optional[int] = None,
        window: Optional[AnalysisWindow] = None,
    ) -> None:
        """Make ``operation`` raise ``error``, optionally only for one supplier or window."""
        self._failures[(operation, supplier_id, window)] = error

    def _maybe_fail(self, operation: str, supplier_id: Optional[int], window: AnalysisWindow) -> None:
        for key in ((operation, supplier_id, window), (operation, supplier_id, None),
                    (operation, None, window), (operation, None, None)):
            if key in self._failures:
                raise self._failures[key]

    async def get_supplier_metrics(self, window, supplier_ids=None, min_transactions=0):
        self.calls["get_supplier_metrics"] += 1
        self._maybe_fail("get_supplier_metrics", None, window)
        wanted = set(supplier_ids) if supplier_ids is not None else None
        return [
            snapshot for supplier_id, snapshot in sorted(self._snapshots.get(window, {}).items())
            if (wanted is None or supplier_id in wanted) and snapshot.order_count >= min_transactions
        ]

    async def get_delivery_detail(self, supplier_id, window):
        self.calls["get_delivery_detail"] += 1
        self._maybe_fail("get_delivery_detail", supplier_id, window)
        return list(self._deliveries.get((supplier_id, window), []))

    async def get_quality_detail(self, supplier_id, window):
        self.calls["get_quality_detail"] += 1
        self._maybe_fail("get_quality_detail", supplier_id, window)
        return self._quality.get((supplier_id, window))

    async def get_supplier(self, supplier_id):
        self.calls["get_supplier"] += 1
        return self._suppliers.get(supplier_id)


# ==================== SQL ====================

def _naive_utc(moment: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


class SqlMetricsProvider(MetricsProvider):
    """Aggregates supplier transactions from the SQLAlchemy store.

    Every call opens its own session: the service fans detail queries out
    concurrently and an ``AsyncSession`` must not be shared between tasks.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], delivery_grace_days: float = 1.0):
        self.session_factory = session_factory
        self.delivery_grace_days = delivery_grace_days

    def _in_window(self, window: AnalysisWindow):
        return and_(
            SupplierTransaction.created_at >= _naive_utc(window.start),
            SupplierTransaction.created_at < _naive_utc(window.end),
        )

    async def get_supplier_metrics(self, window, supplier_ids=None, min_transactions=0):
        try:
            async with self.session_factory() as db:
                return await self._collect_snapshots(db, window, supplier_ids, min_transactions)
        except SQLAlchemyError as e:
            logger.warning(f"Supplier metrics query failed: {e}")
            raise MetricsProviderUnavailableError("get_supplier_metrics", str(e)) from e

    async def _collect_snapshots(
        self, db: AsyncSession, window, supplier_ids, min_transactions
    ) -> List[SupplierMetricsSnapshot]:
        supplier_query = select(Supplier).where(Supplier.only_active())
        if supplier_ids is not None:
            supplier_query = supplier_query.where(Supplier.id.in_(supplier_ids))
        suppliers = list((await db.execute(supplier_query.order_by(Supplier.id))).scalars().all())
        if not suppliers:
            return []
        ids = [s.id for s in suppliers]
        in_scope = and_(SupplierTransaction.supplier_id.in_(ids), self._in_window(window))
        is_purchase = SupplierTransaction.transaction_type == TransactionType.PURCHASE

        purchase_rows = (await db.execute(
            select(
                SupplierTransaction.supplier_id,
                func.count(SupplierTransaction.id),
                func.coalesce(func.sum(SupplierTransaction.amount), 0),
                func.avg(SupplierTransaction.amount),
                func.count(func.distinct(SupplierTransaction.product_code)),
                func.min(SupplierTransaction.created_at),
                func.max(SupplierTransaction.created_at),
            )
            .where(in_scope, is_purchase)
            .group_by(SupplierTransaction.supplier_id)
        )).all()
        purchases = {row[0]: row for row in purchase_rows}

        type_counts: Dict[int, Counter] = defaultdict(Counter)
        type_rows = await db.execute(
            select(SupplierTransaction.supplier_id, SupplierTransaction.transaction_type, func.count(SupplierTransaction.id))
            .where(in_scope)
            .group_by(SupplierTransaction.supplier_id, SupplierTransaction.transaction_type)
        )
        for supplier_id, tx_type, count in type_rows.all():
            type_counts[supplier_id][tx_type] = count

        status_counts: Dict[int, Counter] = defaultdict(Counter)
        status_rows = await db.execute(
            select(SupplierTransaction.supplier_id, SupplierTransaction.status, func.count(SupplierTransaction.id))
            .where(in_scope, is_purchase)
            .group_by(SupplierTransaction.supplier_id, SupplierTransaction.status)
        )
        for supplier_id, status, count in status_rows.all():
            status_counts[supplier_id][status] = count

        timings: Dict[int, list] = defaultdict(list)
        timing_rows = await db.execute(
            select(
                SupplierTransaction.supplier_id,
                SupplierTransaction.created_at,
                SupplierTransaction.expected_delivery_at,
                SupplierTransaction.delivered_at,
                SupplierTransaction.completed_at,
            ).where(in_scope, is_purchase)
        )
        for row in timing_rows.all():
            timings[row[0]].append(row)

        snapshots = []
        for supplier in suppliers:
            row = purchases.get(supplier.id)
            order_count = row[1] if row else 0
            if order_count < min_transactions:
                continue
            snapshots.append(self._build_snapshot(
                supplier, row, type_counts[supplier.id], status_counts[supplier.id], timings[supplier.id]
            ))
        return snapshots

    def _build_snapshot(self, supplier: Supplier, row, types: Counter, statuses: Counter, timing_rows) -> SupplierMetricsSnapshot:
        order_count = row[1] if row else 0
        first_at = row[5] if row else None
        last_at = row[6] if row else None

        interval = None
        if order_count > 1 and first_at and last_at:
            interval = (last_at - first_at).total_seconds() / 86400 / (order_count - 1)

        records = [
            DeliveryRecord(expected_at=expected, delivered_at=delivered)
            for _, _, expected, delivered, _ in timing_rows
            if expected is not None and delivered is not None
        ]
        response_hours = [
            (completed - created).total_seconds() / 3600
            for _, created, _, _, completed in timing_rows
            if completed is not None
        ]

        return SupplierMetricsSnapshot(
            supplier_id=supplier.id,
            supplier_code=supplier.code,
            supplier_name=supplier.name,
            category=supplier.category,
            order_count=order_count,
            total_value=float(row[2]) if row else 0.0,
            average_order_value=float(row[3]) if row and row[3] is not None else None,
            unique_products=row[4] if row else 0,
            average_order_interval_days=interval,
            first_transaction_at=first_at,
            last_transaction_at=last_at,
            average_response_hours=statistics.fmean(response_hours) if response_hours else None,
            return_count=types[TransactionType.RETURN],
            adjustment_count=types[TransactionType.ADJUSTMENT],
            defect_count=types[TransactionType.COMPLAINT],
            delivery=self._delivery_stats(records),
            completed_count=statuses[TransactionStatus.COMPLETED] if order_count else None,
            partial_count=statuses[TransactionStatus.PARTIAL] if order_count else None,
            cancelled_count=statuses[TransactionStatus.CANCELLED] if order_count else None,
            payment_term_days=supplier.payment_term_days,
            credit_limit=float(supplier.credit_limit) if supplier.credit_limit is not None else None,
            payment_methods=supplier.payment_method_list,
            early_payment_discount=supplier.early_payment_discount,
        )

    def _delivery_stats(self, records: List[DeliveryRecord]) -> Optional[DeliveryStats]:
        if not records:
            return None
        delays = [r.delay_days for r in records]
        return DeliveryStats(
            total_count=len(delays),
            on_time_count=sum(1 for d in delays if d <= self.delivery_grace_days),
            mean_delay_days=statistics.fmean(delays),
            delay_std_days=statistics.pstdev(delays) if len(delays) > 1 else 0.0,
        )

    async def get_delivery_detail(self, supplier_id, window):
        try:
            async with self.session_factory() as db:
                rows = (await db.execute(
                    select(SupplierTransaction.expected_delivery_at, SupplierTransaction.delivered_at)
                    .where(
                        SupplierTransaction.supplier_id == supplier_id,
                        SupplierTransaction.transaction_type == TransactionType.PURCHASE,
                        SupplierTransaction.expected_delivery_at.is_not(None),
                        SupplierTransaction.delivered_at.is_not(None),
                        self._in_window(window),
                    )
                    .order_by(SupplierTransaction.created_at)
                )).all()
        except SQLAlchemyError as e:
            raise MetricsProviderUnavailableError("get_delivery_detail", str(e)) from e
        return [DeliveryRecord(expected_at=expected, delivered_at=delivered) for expected, delivered in rows]

    async def get_quality_detail(self, supplier_id, window):
        try:
            async with self.session_factory() as db:
                rows = (await db.execute(
                    select(SupplierTransaction.transaction_type, func.count(SupplierTransaction.id))
                    .where(SupplierTransaction.supplier_id == supplier_id, self._in_window(window))
                    .group_by(SupplierTransaction.transaction_type)
                )).all()
        except SQLAlchemyError as e:
            raise MetricsProviderUnavailableError("get_quality_detail", str(e)) from e
        counts = Counter({tx_type: count for tx_type, count in rows})
        return QualityDetail(
            transaction_count=counts[TransactionType.PURCHASE],
            return_count=counts[TransactionType.RETURN],
            adjustment_count=counts[TransactionType.ADJUSTMENT],
            defect_count=counts[TransactionType.COMPLAINT],
        )

    async def get_supplier(self, supplier_id):
        try:
            async with self.session_factory() as db:
                supplier = await db.get(Supplier, supplier_id)
        except SQLAlchemyError as e:
            raise MetricsProviderUnavailableError("get_supplier", str(e)) from e
        if supplier is None:
            return None
        return SupplierIdentity(
            supplier_id=supplier.id,
            code=supplier.code,
            name=supplier.name,
            category=supplier.category,
        )
