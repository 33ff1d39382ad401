"""
Exception Classes - Strongly typed exception hierarchy.
"""


class ReceiptVerificationError(Exception):
    """Base exception for all receipt verification errors."""

    pass


class VendorUnavailableError(ReceiptVerificationError):
    """Raised when the verifyReceipt endpoint cannot be reached or rejects the call."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        self.message = message
        super().__init__(f"Vendor unavailable at {url}: {message}")


class VendorResponseError(ReceiptVerificationError):
    """Raised when a verifyReceipt response body cannot be deserialized."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid vendor response: {message}")


class ReceiptStructureError(ReceiptVerificationError):
    """Raised when a vendor receipt lacks data needed for reconciliation."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Vendor receipt is missing '{field}'")


class AuditLogError(ReceiptVerificationError):
    """Raised when a validation audit record cannot be stored."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Audit log write failed: {message}")
