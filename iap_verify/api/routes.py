"""
API Routes - FastAPI endpoints for receipt verification.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from iap_verify.api.dependencies import get_verification_service
from iap_verify.db.session import get_db
from iap_verify.exceptions import AuditLogError
from iap_verify.models.api import (
    AppleReceiptRequest,
    HealthResponse,
    ValidatedPurchaseResponse,
    ValidationLogItem,
    ValidationLogListResponse,
)
from iap_verify.models.receipt import ClaimedReceipt
from iap_verify.observability.metrics import metrics
from iap_verify.services.audit_log import ValidationAuditService
from iap_verify.services.reconciliation import INVALID_RECEIPT
from iap_verify.services.verification import ReceiptVerificationService

logger = get_logger(__name__)

router = APIRouter()

EMPTY_CLAIM = ClaimedReceipt(bundle_id=None, product_id=None, transaction_id=None, token=None)


def parse_claim(body: bytes) -> ClaimedReceipt:
    """Parse a request body into a claim; unparseable bodies become an empty claim."""
    try:
        return AppleReceiptRequest.model_validate_json(body).to_claim()
    except ValidationError as exc:
        logger.error("apple_receipt_request_unparseable", error_count=exc.error_count())
        return EMPTY_CLAIM


@router.post(
    "/v1/receipts/apple/verify",
    response_model=ValidatedPurchaseResponse,
    status_code=status.HTTP_200_OK,
    responses={400: {"description": "Receipt could not be validated"}},
)
async def verify_apple_receipt(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: ReceiptVerificationService = Depends(get_verification_service),
) -> ValidatedPurchaseResponse:
    """
    Verify an App Store receipt.

    Flow:
    1. Client sends bundle/product/transaction ids and the receipt token
    2. Backend posts the token to Apple (production, then sandbox if needed)
    3. Apple's purchase data is reconciled with the claim
    4. The attempt is stored in the audit log
    5. The normalized purchase is returned, or a generic 400

    Failure reasons are logged and stored, never returned to the client.
    """
    claim = parse_claim(await request.body())
    result = await service.verify(claim)

    try:
        await ValidationAuditService(db).record(result)
    except AuditLogError as exc:
        logger.error("receipt_validation_log_failed", error=str(exc))
        metrics.record_audit_failure()

    outcome = result.outcome
    if outcome.is_valid and outcome.validated_purchase is not None:
        return ValidatedPurchaseResponse.from_purchase(outcome.validated_purchase)

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=INVALID_RECEIPT,
    )


@router.get(
    "/v1/receipts/apple/logs/{bundle_id}/{transaction_id}",
    response_model=ValidationLogListResponse,
)
async def list_validation_logs(
    bundle_id: str,
    transaction_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> ValidationLogListResponse:
    """Stored verification attempts for a bundle / transaction pair, newest first."""
    records, total_count = await ValidationAuditService(db).list_for_transaction(
        bundle_id=bundle_id,
        transaction_id=transaction_id,
        limit=limit,
        offset=offset,
    )

    return ValidationLogListResponse(
        logs=[
            ValidationLogItem(
                id=record.id,
                bundle_id=record.bundle_id,
                product_id=record.product_id,
                transaction_id=record.transaction_id,
                environment=record.environment,
                is_valid=record.is_valid,
                reason=record.reason,
                validated_transaction_id=record.validated_transaction_id,
                original_transaction_id=record.original_transaction_id,
                purchase_date=record.purchase_date,
                expires_date=record.expires_date,
                created_at=record.created_at,
            )
            for record in records
        ],
        total_count=total_count,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))

        return HealthResponse(
            status="healthy",
            database="connected",
            timestamp=datetime.now(UTC).isoformat(),
        )

    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(exc),
                "timestamp": datetime.now(UTC).isoformat(),
            },
        ) from exc
