"""
Tests for logging, metrics and tracing setup.
"""
import json
import logging
from typing import Any

import pytest
import structlog
from opentelemetry import trace
from prometheus_client import REGISTRY

from subscription_platform.api.main import create_app
from subscription_platform.api.payment_app import SERVICE_NAME, create_payment_app
from subscription_platform.config import Settings
from subscription_platform.monitoring import metrics, setup_logging, setup_tracing
from subscription_platform.monitoring.logging import ServiceContext, add_trace_context


def last_event(capsys: Any) -> dict:
    """Decode the structlog payload of the last line written to stdout."""
    line = capsys.readouterr().out.strip().splitlines()[-1]
    return json.loads(json.loads(line)["message"])


class TestLogging:
    """Test suite for structured logging setup."""

    @pytest.mark.unit
    def test_setup_logging_sets_level_and_single_handler(self) -> None:
        setup_logging(Settings(log_level="warning"))

        root_logger = logging.getLogger()
        assert root_logger.level == logging.WARNING
        assert len(root_logger.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    @pytest.mark.unit
    def test_service_context_uses_given_identity(self) -> None:
        processor = ServiceContext("payment-service", "staging")

        event = processor(None, "info", {"event": "something_happened"})

        assert event == {"event": "something_happened", "service": "payment-service", "app_env": "staging"}

    @pytest.mark.unit
    def test_events_carry_configured_service(self, capsys: Any) -> None:
        setup_logging(Settings(app_name="billing-worker", app_env="staging", log_level="INFO"))
        capsys.readouterr()

        structlog.get_logger("tests.service_identity").info("subscription_created", plan="basic")

        event = last_event(capsys)
        assert event["event"] == "subscription_created"
        assert event["service"] == "billing-worker"
        assert event["app_env"] == "staging"

    @pytest.mark.unit
    def test_payment_app_logs_as_payment_service(self, capsys: Any, test_settings: Settings, fast_processor: Any) -> None:
        create_payment_app(settings=test_settings, processor=fast_processor)
        capsys.readouterr()

        structlog.get_logger("tests.payment_identity").info("payment_processed")

        event = last_event(capsys)
        assert event["service"] == SERVICE_NAME
        assert event["app_env"] == "test"

    @pytest.mark.unit
    def test_subscription_app_logs_with_its_app_name(self, capsys: Any, test_settings: Settings, workflow: Any) -> None:
        create_app(settings=test_settings, workflow=workflow)
        capsys.readouterr()

        structlog.get_logger("tests.subscription_identity").info("subscription_listed")

        assert last_event(capsys)["service"] == "subscription-service-test"

    @pytest.mark.unit
    def test_trace_ids_added_inside_span(self) -> None:
        tracer = setup_tracing("subscription-service-test", environment="test")

        assert "trace_id" not in add_trace_context(None, "info", {})
        with tracer.start_as_current_span("logged"):
            event = add_trace_context(None, "info", {})

        assert len(event["trace_id"]) == 32
        assert len(event["span_id"]) == 16


class TestMetricsAndTracing:
    """Test suite for metrics and tracing setup."""

    @pytest.mark.unit
    def test_compensation_counter(self) -> None:
        labels = {"error_type": "invalid_card"}
        before = REGISTRY.get_sample_value("subscription_compensations_total", labels) or 0.0

        metrics.record_compensation("invalid_card")

        assert REGISTRY.get_sample_value("subscription_compensations_total", labels) == before + 1

    @pytest.mark.unit
    def test_setup_tracing_is_idempotent(self) -> None:
        first = setup_tracing("subscription-service-test", environment="test")
        second = setup_tracing("subscription-service-test", environment="test")

        assert isinstance(first, trace.Tracer)
        assert isinstance(second, trace.Tracer)
        with first.start_as_current_span("check") as span:
            assert span.get_span_context().is_valid
