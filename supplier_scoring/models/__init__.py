"""SQLAlchemy models."""

from supplier_scoring.models.supplier import (
    Supplier,
    SupplierTransaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Supplier",
    "SupplierTransaction",
    "TransactionStatus",
    "TransactionType",
]
