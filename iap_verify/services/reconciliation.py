"""
Receipt reconciliation.

Cross-checks Apple's purchase data against the client's claim and decides
whether the purchase is authentic and current.
"""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from structlog import get_logger

from iap_verify.exceptions import ReceiptStructureError
from iap_verify.models.apple import ApplePurchaseRecord, VendorResponse, normalize_keys
from iap_verify.models.receipt import ClaimedReceipt, ValidatedPurchase, ValidationOutcome

logger = get_logger(__name__)

INVALID_RECEIPT = "Invalid receipt"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def from_epoch_ms(milliseconds: int) -> datetime:
    """Convert Apple's milliseconds-since-epoch to a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=milliseconds)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def select_purchase(purchases: Sequence[Any], product_id: str) -> dict[str, Any] | None:
    """Most recent raw entry for a product; Apple lists oldest first.

    Entries that are not objects are skipped, and numeric product ids match
    their text.
    """
    for entry in reversed(purchases):
        entry = normalize_keys(entry)
        if not isinstance(entry, dict) or entry.get("product_id") is None:
            continue
        if str(entry["product_id"]) == product_id:
            return entry
    return None


class ReceiptReconciler:
    """
    Decides authenticity and currency of a claimed purchase.

    Args:
        grace_days: Whole days a lapsed subscription is still accepted
        clock: Returns the current UTC time (injectable for tests)
    """

    def __init__(self, grace_days: int = 0, clock: Callable[[], datetime] | None = None) -> None:
        if grace_days < 0:
            raise ValueError(f"grace_days cannot be negative: {grace_days}")
        self.grace_days = grace_days
        self._clock = clock or _utc_now

    def validate(
        self, claimed: ClaimedReceipt, vendor_response: VendorResponse | None
    ) -> ValidationOutcome:
        """Reconcile a claim with Apple's response. Never raises."""
        if vendor_response is None or not claimed.is_complete():
            return ValidationOutcome.failure(INVALID_RECEIPT)

        if vendor_response.is_wrong_environment():
            # Wrong-environment reply that was not retried
            return ValidationOutcome.failure(INVALID_RECEIPT)

        if not vendor_response.is_valid():
            return ValidationOutcome.failure(vendor_response.error or INVALID_RECEIPT)

        try:
            return self._reconcile(claimed, vendor_response)
        except Exception as exc:
            logger.error(
                "apple_receipt_reconciliation_failed",
                bundle_id=claimed.bundle_id,
                product_id=claimed.product_id,
                error=str(exc),
                exc_info=True,
            )
            return ValidationOutcome.failure(str(exc) or type(exc).__name__)

    def is_expired(self, expires_date_ms: int) -> bool:
        """Expiry plus grace, compared by UTC calendar date; the same day counts as expired."""
        effective = from_epoch_ms(expires_date_ms) + timedelta(days=self.grace_days)
        return effective.date() <= self._clock().astimezone(UTC).date()

    def _reconcile(self, claimed: ClaimedReceipt, response: VendorResponse) -> ValidationOutcome:
        receipt = response.receipt
        if receipt is None:
            return ValidationOutcome.failure("no receipt returned")

        if receipt.bundle_id is None:
            raise ReceiptStructureError("bundle_id")
        if receipt.bundle_id != claimed.bundle_id:
            return ValidationOutcome.failure(
                f"bundle id '{claimed.bundle_id}' does not match '{receipt.bundle_id}'"
            )

        # An absent in_app array is treated as empty
        purchases = response.latest_receipt_info or receipt.in_app or []
        entry = select_purchase(purchases, claimed.product_id)
        if entry is None:
            return ValidationOutcome.failure(
                f"did not find '{claimed.product_id}' in list of purchases"
            )

        # Type mismatches raise ValidationError and end as an invalid outcome
        purchase = ApplePurchaseRecord.model_validate(entry)

        if purchase.transaction_id is None:
            raise ReceiptStructureError("transaction_id")
        if purchase.original_transaction_id is None:
            raise ReceiptStructureError("original_transaction_id")
        if purchase.purchase_date_ms is None:
            raise ReceiptStructureError("purchase_date_ms")

        if claimed.transaction_id not in (
            purchase.transaction_id,
            purchase.original_transaction_id,
        ):
            return ValidationOutcome.failure(
                f"transaction id '{claimed.transaction_id}' does not match either original "
                f"'{purchase.original_transaction_id}', or '{purchase.transaction_id}'"
            )

        expires_date_ms = purchase.expires_date_ms or 0
        if expires_date_ms > 0 and self.is_expired(expires_date_ms):
            return ValidationOutcome.failure(f"subscription expired {expires_date_ms}")

        return ValidationOutcome.success(
            ValidatedPurchase(
                bundle_id=claimed.bundle_id,
                product_id=claimed.product_id,
                transaction_id=purchase.transaction_id,
                original_transaction_id=purchase.original_transaction_id,
                purchase_date=from_epoch_ms(purchase.purchase_date_ms),
                expires_date=from_epoch_ms(expires_date_ms) if expires_date_ms > 0 else None,
                token=claimed.token,
                developer_payload=claimed.developer_payload,
            )
        )
