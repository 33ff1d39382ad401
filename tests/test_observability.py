"""
Tests for logging, metrics and tracing helpers.
"""

import logging
from unittest.mock import MagicMock

import structlog

from iap_verify.models.receipt import VendorEnvironment
from iap_verify.observability.logging import QUIET_LOGGERS, log_context, setup_logging
from iap_verify.observability.metrics import metrics
from iap_verify.observability.tracing import (
    add_span_attributes,
    add_span_event,
    trace_operation,
)


class TestLogging:
    """Tests for logging setup."""

    def test_single_stdout_handler(self):
        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_quiet_loggers(self):
        setup_logging()

        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level >= logging.WARNING

    def test_log_context_binds_and_unbinds(self):
        with log_context(request_id="req-1"):
            assert structlog.contextvars.get_contextvars()["request_id"] == "req-1"

        assert "request_id" not in structlog.contextvars.get_contextvars()


class TestTracingHelpers:
    """Tests for span helpers."""

    def test_attributes_skip_none_and_unwrap_enums(self):
        span = MagicMock()

        add_span_attributes(span, bundle_id="com.x.app", reason=None, environment=VendorEnvironment.SANDBOX)

        span.set_attribute.assert_any_call("bundle_id", "com.x.app")
        span.set_attribute.assert_any_call("environment", "sandbox")
        assert span.set_attribute.call_count == 2

    def test_event(self):
        span = MagicMock()

        add_span_event(span, "vendor_call", environment=VendorEnvironment.PRODUCTION, status=None, answered=False)

        span.add_event.assert_called_once_with(
            "vendor_call", attributes={"environment": "production", "answered": False}
        )

    def test_trace_operation_without_provider(self):
        with trace_operation("apple_receipt_verification", bundle_id="com.x.app") as span:
            span.set_attribute("is_valid", True)


class TestMetrics:
    """Tests for the metrics recorder."""

    def test_record_verification_without_environment(self):
        before = metrics.verifications_total.labels(is_valid="False", environment="none")._value.get()

        metrics.record_verification(False, None)

        after = metrics.verifications_total.labels(is_valid="False", environment="none")._value.get()
        assert after == before + 1
