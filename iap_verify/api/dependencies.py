"""
API Dependencies - FastAPI dependency providers.
"""

from fastapi import Depends, HTTPException, Request, status

from iap_verify.config import Settings, get_settings
from iap_verify.services.apple_receipt_client import AppleReceiptClient
from iap_verify.services.reconciliation import ReceiptReconciler
from iap_verify.services.verification import ReceiptVerificationService


def get_apple_client(request: Request) -> AppleReceiptClient:
    """verifyReceipt client created at startup (shares one connection pool)."""
    client: AppleReceiptClient | None = getattr(request.app.state, "apple_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Apple client not initialized",
        )
    return client


def get_verification_service(
    client: AppleReceiptClient = Depends(get_apple_client),
    app_settings: Settings = Depends(get_settings),
) -> ReceiptVerificationService:
    """Build the verification pipeline from configuration."""
    return ReceiptVerificationService(
        client=client,
        reconciler=ReceiptReconciler(grace_days=app_settings.grace_days),
        secret_resolver=app_settings.shared_secret_for,
    )
