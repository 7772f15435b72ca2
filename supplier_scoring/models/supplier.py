"""Supplier and supplier transaction models."""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supplier_scoring.db.base import ActiveFlagMixin, AuditMixin, Base


class TransactionType(str, enum.Enum):
    """Kind of supplier transaction recorded in the store."""
    PURCHASE = "purchase"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    COMPLAINT = "complaint"


class TransactionStatus(str, enum.Enum):
    """Fulfillment status of a purchase."""
    PENDING = "pending"
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


class Supplier(Base, AuditMixin, ActiveFlagMixin):
    """Supplier with its commercial terms."""

    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Commercial terms
    payment_term_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    credit_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    payment_methods: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # comma-separated
    early_payment_discount: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    transactions: Mapped[list["SupplierTransaction"]] = relationship(
        "SupplierTransaction", back_populates="supplier"
    )

    @property
    def payment_method_list(self) -> list[str]:
        if not self.payment_methods:
            return []
        return [m.strip() for m in self.payment_methods.split(",") if m.strip()]


class SupplierTransaction(Base):
    """A purchase, return, adjustment or complaint booked against a supplier."""

    __tablename__ = "supplier_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    supplier_id: Mapped[int] = mapped_column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    product_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), default=TransactionType.PURCHASE, nullable=False, index=True
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), default=TransactionStatus.COMPLETED, nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    expected_delivery_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    supplier: Mapped["Supplier"] = relationship("Supplier", back_populates="transactions")
