"""
Receipt Verification Service.

Runs the two-step Apple pipeline for one claimed receipt:

1. POST to the production verifyReceipt endpoint
2. Only when production reports a sandbox receipt, POST once to sandbox
3. Reconcile the final reply with the claim

Every call is kept as a tagged step so the decision can be audited.
"""

from collections.abc import Callable
from dataclasses import dataclass

from structlog import get_logger

from iap_verify.models.apple import VendorResponse
from iap_verify.models.receipt import ClaimedReceipt, ValidationOutcome, VendorEnvironment
from iap_verify.observability.metrics import metrics
from iap_verify.observability.tracing import add_span_event, trace_operation
from iap_verify.services.apple_receipt_client import AppleReceiptClient
from iap_verify.services.reconciliation import INVALID_RECEIPT, ReceiptReconciler

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationStep:
    """One verifyReceipt call and what it returned (None = no usable reply)."""

    environment: VendorEnvironment
    response: VendorResponse | None


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification plus the calls that produced it."""

    claim: ClaimedReceipt
    outcome: ValidationOutcome
    steps: tuple[VerificationStep, ...] = ()

    @property
    def final_response(self) -> VendorResponse | None:
        """Response the outcome was decided on."""
        return self.steps[-1].response if self.steps else None

    @property
    def environment(self) -> str | None:
        """Environment reported by Apple for the deciding response."""
        response = self.final_response
        return response.environment if response else None


class ReceiptVerificationService:
    """
    Verifies claimed receipts against Apple.

    Holds no per-request state; safe to share between concurrent requests.
    """

    def __init__(
        self,
        client: AppleReceiptClient,
        reconciler: ReceiptReconciler,
        secret_resolver: Callable[[str], str | None],
    ) -> None:
        """
        Initialize verification service.

        Args:
            client: verifyReceipt client
            reconciler: Reconciliation engine (carries the grace period)
            secret_resolver: Maps a bundle id to its shared secret
        """
        self.client = client
        self.reconciler = reconciler
        self.secret_resolver = secret_resolver

    async def verify(self, claim: ClaimedReceipt) -> VerificationResult:
        """
        Verify a claimed receipt.

        Never raises for receipt problems; every failure ends up as an
        invalid outcome.
        """
        missing = claim.missing_fields()
        if missing:
            logger.info(
                "apple_receipt_incomplete",
                bundle_id=claim.bundle_id,
                product_id=claim.product_id,
                missing_fields=missing,
            )
            result = VerificationResult(
                claim=claim, outcome=ValidationOutcome.failure(INVALID_RECEIPT)
            )
            metrics.record_verification(False, None)
            return result

        with trace_operation(
            "apple_receipt_verification",
            bundle_id=claim.bundle_id,
            product_id=claim.product_id,
        ) as span:
            steps = await self.call_vendor(claim)
            for step in steps:
                add_span_event(
                    span,
                    "vendor_call",
                    environment=step.environment,
                    status=step.response.status_code if step.response else None,
                    answered=step.response is not None,
                )
            outcome = self.reconciler.validate(claim, steps[-1].response)
            result = VerificationResult(claim=claim, outcome=outcome, steps=steps)
            span.set_attribute("is_valid", outcome.is_valid)
            span.set_attribute("vendor_calls", len(steps))

        metrics.record_verification(outcome.is_valid, result.environment)

        if outcome.is_valid and outcome.validated_purchase is not None:
            logger.info(
                "apple_receipt_validated",
                bundle_id=claim.bundle_id,
                product_id=claim.product_id,
                environment=result.environment,
                subscription=outcome.validated_purchase.is_subscription(),
            )
        else:
            logger.info(
                "apple_receipt_rejected",
                bundle_id=claim.bundle_id,
                product_id=claim.product_id,
                environment=result.environment,
                reason=outcome.reason,
            )

        return result

    async def call_vendor(self, claim: ClaimedReceipt) -> tuple[VerificationStep, ...]:
        """Production call, then one sandbox call if production says so."""
        secret = self.secret_resolver(claim.bundle_id or "")

        production = await self.client.post_receipt(VendorEnvironment.PRODUCTION, claim, secret)
        steps = [VerificationStep(VendorEnvironment.PRODUCTION, production)]

        if production is not None and production.is_wrong_environment():
            logger.info("apple_sandbox_receipt_retrying", bundle_id=claim.bundle_id)
            sandbox = await self.client.post_receipt(VendorEnvironment.SANDBOX, claim, secret)
            steps.append(VerificationStep(VendorEnvironment.SANDBOX, sandbox))

        return tuple(steps)
