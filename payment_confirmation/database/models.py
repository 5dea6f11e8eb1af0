"""SQLAlchemy database models for payment confirmation."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class TransactionStatus(str, Enum):
    """Lifecycle of a locally tracked payment attempt."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        """Terminal states accept no further transitions."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TransactionStatus.COMPLETED, TransactionStatus.FAILED})


class Transaction(Base):
    """
    Transaction records table.

    One row per provider-assigned payment identifier. Status only moves
    forward: once COMPLETED or FAILED the row is frozen.
    """

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    package_id: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value, index=True
    )
    # "metadata" is reserved on declarative classes
    details: Mapped[Dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql"),
        nullable=True,
    )
    expiry_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED', 'EXPIRED')",
            name="valid_transaction_status",
        ),
        Index("idx_transactions_user_status", "user_id", "status"),
    )

    @property
    def is_verified(self) -> bool:
        """A transaction is verified once the provider confirmed payment."""
        return self.status == TransactionStatus.COMPLETED

    def __repr__(self) -> str:
        """String representation of Transaction."""
        return (
            f"<Transaction(id={self.id}, package_id={self.package_id}, "
            f"provider={self.provider}, status={self.status})>"
        )
