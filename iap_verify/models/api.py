"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from iap_verify.models.receipt import ClaimedReceipt, ValidatedPurchase


def _aliases(snake: str, camel: str, pascal: str) -> AliasChoices:
    return AliasChoices(snake, camel, pascal)


class AppleReceiptRequest(BaseModel):
    """POST /v1/receipts/apple/verify request body.

    Every field is optional here; incomplete claims are rejected by the
    verification service without calling Apple.
    """

    model_config = ConfigDict(extra="ignore")

    bundle_id: str | None = Field(
        None, max_length=255, validation_alias=_aliases("bundle_id", "bundleId", "BundleId")
    )
    product_id: str | None = Field(
        None, max_length=255, validation_alias=_aliases("product_id", "productId", "ProductId")
    )
    transaction_id: str | None = Field(
        None,
        max_length=255,
        validation_alias=_aliases("transaction_id", "transactionId", "TransactionId"),
    )
    token: str | None = Field(None, validation_alias=AliasChoices("token", "Token"))
    developer_payload: str | None = Field(
        None,
        max_length=4096,
        validation_alias=_aliases("developer_payload", "developerPayload", "DeveloperPayload"),
    )

    def to_claim(self) -> ClaimedReceipt:
        """Convert to the immutable domain claim."""
        return ClaimedReceipt(
            bundle_id=self.bundle_id,
            product_id=self.product_id,
            transaction_id=self.transaction_id,
            token=self.token,
            developer_payload=self.developer_payload,
        )


class ValidatedPurchaseResponse(BaseModel):
    """POST /v1/receipts/apple/verify success response."""

    bundle_id: str
    product_id: str
    transaction_id: str
    original_transaction_id: str
    purchase_date: datetime
    expires_date: datetime | None = None
    token: str
    developer_payload: str | None = None

    @classmethod
    def from_purchase(cls, purchase: ValidatedPurchase) -> "ValidatedPurchaseResponse":
        return cls(
            bundle_id=purchase.bundle_id,
            product_id=purchase.product_id,
            transaction_id=purchase.transaction_id,
            original_transaction_id=purchase.original_transaction_id,
            purchase_date=purchase.purchase_date,
            expires_date=purchase.expires_date,
            token=purchase.token,
            developer_payload=purchase.developer_payload,
        )


class ValidationLogItem(BaseModel):
    """Stored verification attempt."""

    id: int
    bundle_id: str | None
    product_id: str | None
    transaction_id: str | None
    environment: str | None
    is_valid: bool
    reason: str | None
    validated_transaction_id: str | None
    original_transaction_id: str | None
    purchase_date: datetime | None
    expires_date: datetime | None
    created_at: datetime


class ValidationLogListResponse(BaseModel):
    """GET /v1/receipts/apple/logs/{bundle_id}/{transaction_id} response."""

    logs: list[ValidationLogItem]
    total_count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    timestamp: str
