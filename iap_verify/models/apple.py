"""
Apple verifyReceipt models.

The response body is deserialized into pydantic models rather than walked as a
loose dict. Keys Apple may omit are Optional so that "absent" stays distinct
from "present but zero/empty".

https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

STATUS_OK = 0
STATUS_INVALID_JSON = 21000
STATUS_MALFORMED_RECEIPT_DATA = 21002
STATUS_RECEIPT_AUTHENTICATION = 21003
STATUS_SHARED_SECRET_MISMATCH = 21004
STATUS_RECEIPT_SERVER_DOWN = 21005
STATUS_EXPIRED_SUBSCRIPTION = 21006
STATUS_TEST_ENVIRONMENT_RECEIPT = 21007
STATUS_PROD_ENVIRONMENT_RECEIPT = 21008
STATUS_INTERNAL_DATA_ACCESS_ERROR = 21009
STATUS_UNAUTHORIZED_RECEIPT = 21010

WRONG_ENVIRONMENT_STATUSES = frozenset(
    {STATUS_TEST_ENVIRONMENT_RECEIPT, STATUS_PROD_ENVIRONMENT_RECEIPT}
)

STATUS_DESCRIPTIONS: dict[int, str] = {
    STATUS_INVALID_JSON: "The request to the App Store was not made using HTTP POST.",
    21001: "This status code is no longer sent by the App Store.",
    STATUS_MALFORMED_RECEIPT_DATA: "The data in the receipt-data property was malformed or the service experienced a temporary issue.",
    STATUS_RECEIPT_AUTHENTICATION: "The receipt could not be authenticated.",
    STATUS_SHARED_SECRET_MISMATCH: "The shared secret you provided does not match the shared secret on file for your account.",
    STATUS_RECEIPT_SERVER_DOWN: "The receipt server was temporarily unable to provide the receipt.",
    STATUS_EXPIRED_SUBSCRIPTION: "This receipt is valid but the subscription has expired.",
    STATUS_TEST_ENVIRONMENT_RECEIPT: "This receipt is from the test environment, but it was sent to the production environment for verification.",
    STATUS_PROD_ENVIRONMENT_RECEIPT: "This receipt is from the production environment, but it was sent to the test environment for verification.",
    STATUS_INTERNAL_DATA_ACCESS_ERROR: "Internal data access error.",
    STATUS_UNAUTHORIZED_RECEIPT: "The user account cannot be found or has been deleted.",
}


def describe_status(status: int) -> str:
    """Human readable description of a verifyReceipt status code."""
    if status in STATUS_DESCRIPTIONS:
        return STATUS_DESCRIPTIONS[status]
    if 21100 <= status <= 21199:
        return f"Internal data access error ({status})."
    return f"Unknown App Store status {status}."


def normalize_keys(data: Any) -> Any:
    """Lower-case the keys of a verifyReceipt object; other values pass through."""
    if isinstance(data, dict):
        return {str(key).lower(): value for key, value in data.items()}
    return data


def _coerce_text(value: Any) -> Any:
    # Apple sends ids as strings, but numeric ids are accepted as their text
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class AppleModel(BaseModel):
    """Base for verifyReceipt payload models.

    Keys are matched case-insensitively and unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def lowercase_keys(cls, data: Any) -> Any:
        return normalize_keys(data)


class ApplePurchaseRecord(AppleModel):
    """One entry of ``in_app`` or ``latest_receipt_info``.

    Parsed only for the entry selected for the claimed product, so a malformed
    entry for another product never affects the outcome.
    """

    product_id: str | None = None
    transaction_id: str | None = None
    original_transaction_id: str | None = None
    purchase_date_ms: int | None = None
    expires_date_ms: int | None = None  # Subscriptions only

    @field_validator("product_id", "transaction_id", "original_transaction_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _coerce_text(v)


class AppleReceipt(AppleModel):
    """Top-level ``receipt`` object.

    ``in_app`` entries are kept as raw objects; see ApplePurchaseRecord.
    """

    bundle_id: str | None = None
    in_app: list[Any] | None = None

    @field_validator("bundle_id", mode="before")
    @classmethod
    def coerce_bundle_id(cls, v: Any) -> Any:
        return _coerce_text(v)


class AppleVerifyReceiptResponse(AppleModel):
    """verifyReceipt response envelope.

    Only ``status`` is required; the response is classified on it before any
    purchase entry is read.
    """

    status: int
    environment: str | None = None  # "Production" or "Sandbox"
    receipt: AppleReceipt | None = None
    latest_receipt_info: list[Any] | None = None


class VendorStatus(str, Enum):
    """Classification of a verifyReceipt response."""

    VALID = "valid"
    WRONG_ENVIRONMENT = "wrong_environment"
    ERROR = "error"


@dataclass(frozen=True)
class VendorResponse:
    """Classified verifyReceipt response."""

    status: VendorStatus
    status_code: int
    environment: str | None = None
    receipt: AppleReceipt | None = None
    latest_receipt_info: list[Any] | None = None
    error: str | None = None

    @classmethod
    def from_apple(cls, body: AppleVerifyReceiptResponse) -> "VendorResponse":
        """Classify a deserialized verifyReceipt body by its status code."""
        if body.status == STATUS_OK:
            return cls(
                status=VendorStatus.VALID,
                status_code=body.status,
                environment=body.environment,
                receipt=body.receipt,
                latest_receipt_info=body.latest_receipt_info,
            )
        if body.status in WRONG_ENVIRONMENT_STATUSES:
            return cls(
                status=VendorStatus.WRONG_ENVIRONMENT,
                status_code=body.status,
                environment=body.environment,
            )
        return cls(
            status=VendorStatus.ERROR,
            status_code=body.status,
            environment=body.environment,
            error=describe_status(body.status),
        )

    def is_valid(self) -> bool:
        return self.status == VendorStatus.VALID

    def is_wrong_environment(self) -> bool:
        return self.status == VendorStatus.WRONG_ENVIRONMENT
