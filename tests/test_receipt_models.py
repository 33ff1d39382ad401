"""
Tests for receipt domain models.

Covers claim completeness and outcome invariants.
"""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime

import pytest

from iap_verify.models.receipt import (
    ClaimedReceipt,
    ValidatedPurchase,
    ValidationOutcome,
    VendorEnvironment,
)


def make_purchase(**overrides) -> ValidatedPurchase:
    values = {
        "bundle_id": "com.x.app",
        "product_id": "premium",
        "transaction_id": "1001",
        "original_transaction_id": "1001",
        "purchase_date": datetime(2024, 1, 1, tzinfo=UTC),
        "token": "t",
    }
    values.update(overrides)
    return ValidatedPurchase(**values)


class TestClaimedReceipt:
    """Tests for ClaimedReceipt."""

    def test_complete_claim(self, claimed_receipt):
        """All required fields present."""
        assert claimed_receipt.missing_fields() == []
        assert claimed_receipt.is_complete() is True

    def test_missing_fields_listed_in_order(self, claim_factory):
        """Absent and empty fields are both reported."""
        claim = claim_factory(bundle_id=None, transaction_id="", token=None)

        assert claim.missing_fields() == ["bundle_id", "transaction_id", "token"]
        assert claim.is_complete() is False

    def test_developer_payload_is_optional(self, claim_factory):
        claim = claim_factory(developer_payload=None)
        assert claim.is_complete() is True

    def test_immutable(self, claimed_receipt):
        with pytest.raises(FrozenInstanceError):
            claimed_receipt.token = "other"  # type: ignore[misc]

    def test_all_none(self):
        claim = ClaimedReceipt(bundle_id=None, product_id=None, transaction_id=None, token=None)
        assert len(claim.missing_fields()) == 4


class TestValidatedPurchase:
    """Tests for ValidatedPurchase."""

    def test_one_time_purchase(self):
        assert make_purchase().is_subscription() is False

    def test_subscription(self):
        purchase = make_purchase(expires_date=datetime(2024, 2, 1, tzinfo=UTC))
        assert purchase.is_subscription() is True


class TestValidationOutcome:
    """Tests for ValidationOutcome invariants."""

    def test_success(self):
        purchase = make_purchase()
        outcome = ValidationOutcome.success(purchase)

        assert outcome.is_valid is True
        assert outcome.reason is None
        assert outcome.validated_purchase == purchase

    def test_failure(self):
        outcome = ValidationOutcome.failure("bad")

        assert outcome.is_valid is False
        assert outcome.reason == "bad"
        assert outcome.validated_purchase is None

    def test_valid_without_purchase_rejected(self):
        with pytest.raises(ValueError, match="requires a validated purchase"):
            ValidationOutcome(is_valid=True)

    def test_valid_with_reason_rejected(self):
        with pytest.raises(ValueError, match="cannot carry a reason"):
            ValidationOutcome(is_valid=True, reason="x", validated_purchase=make_purchase())

    def test_invalid_without_reason_rejected(self):
        with pytest.raises(ValueError, match="requires a reason"):
            ValidationOutcome(is_valid=False)

    def test_invalid_with_empty_reason_rejected(self):
        with pytest.raises(ValueError):
            ValidationOutcome.failure("")

    def test_invalid_with_purchase_rejected(self):
        with pytest.raises(ValueError, match="cannot carry a validated purchase"):
            ValidationOutcome(is_valid=False, reason="x", validated_purchase=make_purchase())

    def test_immutable(self):
        outcome = ValidationOutcome.failure("bad")
        with pytest.raises(FrozenInstanceError):
            outcome.is_valid = True  # type: ignore[misc]


class TestVendorEnvironment:
    """Tests for VendorEnvironment."""

    def test_values(self):
        assert VendorEnvironment.PRODUCTION.value == "production"
        assert VendorEnvironment.SANDBOX.value == "sandbox"
