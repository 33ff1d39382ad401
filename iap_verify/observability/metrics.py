"""
Metrics Collection with Prometheus.

Exposes receipt verification and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from iap_verify.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    ENVIRONMENT = "environment"
    CLASSIFICATION = "classification"
    ERROR_TYPE = "error_type"


class VerificationMetrics:
    """
    Centralized metrics for the IAP Verify API.

    Covers:
    - HTTP requests (rate, duration, in progress)
    - verifyReceipt calls per environment (rate, classification, duration)
    - Verification outcomes (valid / invalid)
    - Audit log writes
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""
        self.service_info = Info(
            "iap_verify_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # HTTP
        self.http_requests_total = Counter(
            "iap_verify_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "iap_verify_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "iap_verify_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # Vendor calls
        self.vendor_calls_total = Counter(
            "iap_verify_vendor_calls_total",
            "Total verifyReceipt calls",
            [MetricLabels.ENVIRONMENT, MetricLabels.CLASSIFICATION],
        )

        self.vendor_call_duration_seconds = Histogram(
            "iap_verify_vendor_call_duration_seconds",
            "verifyReceipt round trip in seconds",
            [MetricLabels.ENVIRONMENT],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        # Outcomes
        self.verifications_total = Counter(
            "iap_verify_verifications_total",
            "Total receipt verifications",
            ["is_valid", MetricLabels.ENVIRONMENT],
        )

        self.audit_log_failures_total = Counter(
            "iap_verify_audit_log_failures_total",
            "Audit records that could not be stored",
        )

        # Errors
        self.errors_total = Counter(
            "iap_verify_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_vendor_call(self, environment: str, classification: str, duration: float) -> None:
        """Record a verifyReceipt round trip.

        ``classification`` is a VendorStatus value or "no_response".
        """
        self.vendor_calls_total.labels(
            environment=environment, classification=classification
        ).inc()
        self.vendor_call_duration_seconds.labels(environment=environment).observe(duration)

    def record_verification(self, is_valid: bool, environment: str | None) -> None:
        """Record a verification outcome."""
        self.verifications_total.labels(
            is_valid=str(is_valid), environment=environment or "none"
        ).inc()

    def record_audit_failure(self) -> None:
        self.audit_log_failures_total.inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = VerificationMetrics()
