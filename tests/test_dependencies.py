"""
Tests for API Dependencies.
"""

from types import SimpleNamespace

import httpx
import pytest
from fastapi import HTTPException

from iap_verify.api.dependencies import get_apple_client, get_verification_service
from iap_verify.config import Settings
from iap_verify.services.apple_receipt_client import AppleReceiptClient
from iap_verify.services.verification import ReceiptVerificationService


def fake_request(**state) -> SimpleNamespace:
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(**state)))


class TestGetAppleClient:
    """Tests for get_apple_client."""

    def test_returns_client_from_state(self):
        client = AppleReceiptClient(httpx.AsyncClient())
        assert get_apple_client(fake_request(apple_client=client)) is client

    def test_uninitialized_is_503(self):
        with pytest.raises(HTTPException) as exc_info:
            get_apple_client(fake_request())

        assert exc_info.value.status_code == 503


class TestGetVerificationService:
    """Tests for get_verification_service."""

    def test_wires_configuration(self):
        client = AppleReceiptClient(httpx.AsyncClient())
        app_settings = Settings(
            database_url="postgresql+asyncpg://u:p@localhost/db",
            grace_days=5,
            apple_bundle_secrets={"com.x.app": "mapped"},
        )

        service = get_verification_service(client=client, app_settings=app_settings)

        assert isinstance(service, ReceiptVerificationService)
        assert service.client is client
        assert service.reconciler.grace_days == 5
        assert service.secret_resolver("com.x.app") == "mapped"
