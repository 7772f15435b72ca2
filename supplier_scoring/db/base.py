"""Declarative base and shared column mixins for the transaction store."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for the supplier and transaction models."""


class AuditMixin:
    """Row creation and last-change times, filled in by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,
    )


class ActiveFlagMixin:
    """Rows that can be retired without deleting their history.

    Retired rows stay in the store but drop out of scoring. Filter queries
    with ``only_active()``.
    """

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1", nullable=False, index=True,
    )

    @classmethod
    def only_active(cls):
        return cls.is_active.is_(True)
