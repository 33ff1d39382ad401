"""
Receipt domain models - Immutable dataclasses for receipt verification.

NO DICTIONARIES - All data uses strongly typed models.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class VendorEnvironment(str, Enum):
    """verifyReceipt endpoint selector."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"


@dataclass(frozen=True)
class ClaimedReceipt:
    """Purchase assertion submitted by the client app, unverified.

    Fields are optional because the claim is whatever the client sent;
    use ``missing_fields`` before contacting Apple.
    """

    bundle_id: str | None
    product_id: str | None
    transaction_id: str | None
    token: str | None
    developer_payload: str | None = None

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or empty."""
        required = {
            "bundle_id": self.bundle_id,
            "product_id": self.product_id,
            "transaction_id": self.transaction_id,
            "token": self.token,
        }
        return [name for name, value in required.items() if not value]

    def is_complete(self) -> bool:
        """Check if every required field is present."""
        return not self.missing_fields()


@dataclass(frozen=True)
class ValidatedPurchase:
    """Normalized purchase record, produced only for a verified receipt."""

    bundle_id: str
    product_id: str
    transaction_id: str
    original_transaction_id: str
    purchase_date: datetime  # UTC
    token: str
    developer_payload: str | None = None
    expires_date: datetime | None = None  # UTC, subscriptions only

    def is_subscription(self) -> bool:
        """Check if the purchase carries an expiry."""
        return self.expires_date is not None


@dataclass(frozen=True)
class ValidationOutcome:
    """Terminal result of verifying one claimed receipt.

    A valid outcome carries a purchase and no reason; an invalid outcome
    carries a reason and no purchase.
    """

    is_valid: bool
    reason: str | None = None
    validated_purchase: ValidatedPurchase | None = None

    def __post_init__(self) -> None:
        """Enforce that exactly one of reason / purchase is populated."""
        if self.is_valid:
            if self.validated_purchase is None:
                raise ValueError("Valid outcome requires a validated purchase")
            if self.reason is not None:
                raise ValueError("Valid outcome cannot carry a reason")
        else:
            if not self.reason:
                raise ValueError("Invalid outcome requires a reason")
            if self.validated_purchase is not None:
                raise ValueError("Invalid outcome cannot carry a validated purchase")

    @classmethod
    def success(cls, purchase: ValidatedPurchase) -> "ValidationOutcome":
        return cls(is_valid=True, validated_purchase=purchase)

    @classmethod
    def failure(cls, reason: str) -> "ValidationOutcome":
        return cls(is_valid=False, reason=reason)
