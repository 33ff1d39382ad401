"""
Apple verifyReceipt client.

NO DICTIONARIES - Responses are deserialized into typed models.

Posts a receipt token to one App Store environment and classifies the reply.
Transport and parse failures are logged here and reported to the caller as
"no response" (None), never raised.
"""

import time

import httpx
from pydantic import ValidationError
from structlog import get_logger

from iap_verify.config import APPLE_PRODUCTION_URL, APPLE_SANDBOX_URL
from iap_verify.exceptions import VendorResponseError, VendorUnavailableError
from iap_verify.models.apple import AppleVerifyReceiptResponse, VendorResponse
from iap_verify.models.receipt import ClaimedReceipt, VendorEnvironment
from iap_verify.observability.metrics import metrics

logger = get_logger(__name__)


class AppleReceiptClient:
    """
    Client for Apple's legacy verifyReceipt endpoints.

    The underlying httpx.AsyncClient is shared across requests; this class
    keeps no per-call state.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        production_url: str = APPLE_PRODUCTION_URL,
        sandbox_url: str = APPLE_SANDBOX_URL,
    ) -> None:
        self.http_client = http_client
        self.production_url = production_url
        self.sandbox_url = sandbox_url

    def url_for(self, environment: VendorEnvironment) -> str:
        """Get the verifyReceipt URL for an environment."""
        if environment == VendorEnvironment.SANDBOX:
            return self.sandbox_url
        return self.production_url

    async def post_receipt(
        self,
        environment: VendorEnvironment,
        receipt: ClaimedReceipt,
        shared_secret: str | None,
    ) -> VendorResponse | None:
        """
        Verify a receipt token against one environment.

        Args:
            environment: Which verifyReceipt endpoint to call
            receipt: Claimed receipt (token is sent to Apple)
            shared_secret: App-specific shared secret for the bundle

        Returns:
            Classified response, or None when no usable reply was obtained
        """
        if not shared_secret:
            logger.warning(
                "apple_shared_secret_missing",
                bundle_id=receipt.bundle_id,
                environment=environment.value,
            )
            return None

        url = self.url_for(environment)
        start_time = time.perf_counter()

        try:
            body = await self._post(url, {"receipt-data": receipt.token, "password": shared_secret})
        except (VendorUnavailableError, VendorResponseError) as exc:
            duration = time.perf_counter() - start_time
            logger.error(
                "apple_receipt_post_failed",
                environment=environment.value,
                bundle_id=receipt.bundle_id,
                error=str(exc),
            )
            metrics.record_vendor_call(environment.value, "no_response", duration)
            metrics.record_error(type(exc).__name__, "apple_verify_receipt")
            return None

        duration = time.perf_counter() - start_time
        response = VendorResponse.from_apple(body)

        logger.info(
            "apple_receipt_posted",
            environment=environment.value,
            bundle_id=receipt.bundle_id,
            status=response.status_code,
            classification=response.status.value,
            vendor_environment=response.environment,
        )
        metrics.record_vendor_call(environment.value, response.status.value, duration)

        return response

    async def _post(self, url: str, payload: dict[str, str | None]) -> AppleVerifyReceiptResponse:
        """POST to verifyReceipt and deserialize the body."""
        try:
            response = await self.http_client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise VendorUnavailableError(url, str(exc) or type(exc).__name__) from exc

        try:
            return AppleVerifyReceiptResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise VendorResponseError(str(exc)) from exc
