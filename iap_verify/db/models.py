"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class ReceiptValidationLog(Base):
    """
    ORM model for receipt_validation_logs table.

    One row per verification request: what the client claimed and what was decided.
    """

    __tablename__ = "receipt_validation_logs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    # Claimed receipt (as sent by the client, possibly incomplete)
    bundle_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token: Mapped[str | None] = mapped_column(Text, nullable=True)
    developer_payload: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Apple
    environment: Mapped[str | None] = mapped_column(String(50), nullable=True)
    vendor_calls: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Outcome
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    validated_transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    original_transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purchase_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("idx_receipt_validation_logs_bundle_tx", "bundle_id", "transaction_id"),
        Index("idx_receipt_validation_logs_product_id", "product_id"),
        Index("idx_receipt_validation_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<ReceiptValidationLog(id={self.id}, bundle_id={self.bundle_id}, "
            f"transaction_id={self.transaction_id}, is_valid={self.is_valid})>"
        )
