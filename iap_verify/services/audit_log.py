"""
Validation Audit Log Service.

Stores one record per verification request, keyed by bundle and transaction
id for later lookup. Callers decide what to do when a write fails; the
verification outcome never depends on it.
"""

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from iap_verify.db.models import ReceiptValidationLog
from iap_verify.exceptions import AuditLogError
from iap_verify.services.verification import VerificationResult

logger = get_logger(__name__)


class ValidationAuditService:
    """Persists and queries receipt validation records."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def record(self, result: VerificationResult) -> ReceiptValidationLog:
        """
        Store a verification result.

        Raises:
            AuditLogError: If the record could not be written
        """
        claim = result.claim
        outcome = result.outcome
        purchase = outcome.validated_purchase

        entry = ReceiptValidationLog(
            bundle_id=claim.bundle_id,
            product_id=claim.product_id,
            transaction_id=claim.transaction_id,
            token=claim.token,
            developer_payload=claim.developer_payload,
            environment=result.environment,
            vendor_calls=len(result.steps),
            is_valid=outcome.is_valid,
            reason=outcome.reason,
            validated_transaction_id=purchase.transaction_id if purchase else None,
            original_transaction_id=purchase.original_transaction_id if purchase else None,
            purchase_date=purchase.purchase_date if purchase else None,
            expires_date=purchase.expires_date if purchase else None,
        )

        try:
            self.db.add(entry)
            await self.db.commit()
        except (SQLAlchemyError, OSError) as exc:
            try:
                await self.db.rollback()
            except (SQLAlchemyError, OSError) as rollback_exc:
                logger.warning("receipt_validation_log_rollback_failed", error=str(rollback_exc))
            raise AuditLogError(str(exc)) from exc

        logger.debug(
            "receipt_validation_logged",
            bundle_id=claim.bundle_id,
            transaction_id=claim.transaction_id,
            is_valid=outcome.is_valid,
        )
        return entry

    async def list_for_transaction(
        self,
        bundle_id: str,
        transaction_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ReceiptValidationLog], int]:
        """
        Records for a bundle / transaction pair, newest first.

        Returns:
            Tuple of (records, total count)
        """
        conditions = (
            ReceiptValidationLog.bundle_id == bundle_id,
            ReceiptValidationLog.transaction_id == transaction_id,
        )

        count_stmt = select(func.count()).select_from(ReceiptValidationLog).where(*conditions)
        total_count = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            select(ReceiptValidationLog)
            .where(*conditions)
            .order_by(ReceiptValidationLog.created_at.desc(), ReceiptValidationLog.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total_count
