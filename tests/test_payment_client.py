"""
Tests for the HTTP payment transport.
"""
import httpx
import pytest

from subscription_platform.api.payment_app import create_payment_app
from subscription_platform.config import Settings
from subscription_platform.core.repository import SubscriptionRepository
from subscription_platform.core.workflow import SubscriptionPaymentError, SubscriptionWorkflow
from subscription_platform.integrations import create_payment_gateway
from subscription_platform.integrations.payment_client import HttpPaymentClient
from subscription_platform.integrations.payment_gateway import (
    PaymentError,
    PaymentErrorType,
    PaymentRequest,
    PaymentStatus,
)
from subscription_platform.integrations.payment_simulator import SimulatedPaymentProcessor


def client_for_app(test_settings: Settings, processor: SimulatedPaymentProcessor) -> HttpPaymentClient:
    app = create_payment_app(settings=test_settings, processor=processor)
    return HttpPaymentClient("http://payment-service", transport=httpx.ASGITransport(app=app))


def client_for_handler(handler) -> HttpPaymentClient:
    return HttpPaymentClient("http://payment-service", transport=httpx.MockTransport(handler))


REQUEST = PaymentRequest(subscription_id="sub_1", amount=20.0, plan="premium")


class TestHttpPaymentClient:
    """Test suite for the client against the payment service."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_successful_payment(self, test_settings: Settings, fast_processor: SimulatedPaymentProcessor) -> None:
        client = client_for_app(test_settings, fast_processor)

        response = await client.process_payment(REQUEST)
        await client.aclose()

        assert response.status == PaymentStatus.COMPLETED
        assert response.amount == 20.0
        assert response.currency == "USD"
        assert response.fees == pytest.approx(0.5)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_declined_payment_keeps_error_kind(self, test_settings: Settings, failing_processor) -> None:
        client = client_for_app(test_settings, failing_processor(PaymentErrorType.INSUFFICIENT_FUNDS))

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(REQUEST)
        await client.aclose()

        assert exc_info.value.error_type == PaymentErrorType.INSUFFICIENT_FUNDS
        assert exc_info.value.code == "INSUFFICIENT_FUNDS"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_validation_error_round_trip(self, test_settings: Settings, fast_processor: SimulatedPaymentProcessor) -> None:
        client = client_for_app(test_settings, fast_processor)

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(PaymentRequest(subscription_id="sub_1", amount=0.0, plan="basic"))
        await client.aclose()

        assert exc_info.value.error_type == PaymentErrorType.VALIDATION
        assert exc_info.value.code == "INVALID_AMOUNT"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_workflow_over_http(self, test_settings: Settings, failing_processor) -> None:
        repository = SubscriptionRepository()
        client = client_for_app(test_settings, failing_processor(PaymentErrorType.PROCESSING_ERROR))
        workflow = SubscriptionWorkflow(repository, client, payment_timeout=5.0)

        with pytest.raises(SubscriptionPaymentError) as exc_info:
            await workflow.create_subscription("u1", "basic")
        await client.aclose()

        assert exc_info.value.error_type == "processing_error"
        assert repository.count() == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_health_check(self, test_settings: Settings, fast_processor: SimulatedPaymentProcessor) -> None:
        client = client_for_app(test_settings, fast_processor)

        health = await client.health_check()
        await client.aclose()

        assert health == {"status": "healthy", "backend": "http"}


class TestHttpPaymentClientErrorMapping:
    """Test suite for transport and response failures."""

    @pytest.mark.asyncio
    async def test_unreadable_error_body(self) -> None:
        client = client_for_handler(lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(REQUEST)

        assert exc_info.value.error_type == PaymentErrorType.PROCESSING_ERROR
        assert exc_info.value.message == "payment failed with status: 502"

    @pytest.mark.asyncio
    async def test_unknown_error_type_falls_back(self) -> None:
        body = {"error": {"code": "WEIRD", "message": "something odd", "type": "mystery"}}
        client = client_for_handler(lambda request: httpx.Response(500, json=body))

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(REQUEST)

        assert exc_info.value.error_type == PaymentErrorType.PROCESSING_ERROR
        assert exc_info.value.code == "WEIRD"
        assert exc_info.value.message == "something odd"

    @pytest.mark.asyncio
    async def test_undecodable_success_body(self) -> None:
        client = client_for_handler(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(REQUEST)

        assert exc_info.value.error_type == PaymentErrorType.PROCESSING_ERROR

    @pytest.mark.asyncio
    async def test_connection_failure_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = client_for_handler(handler)

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(REQUEST)

        assert exc_info.value.error_type == PaymentErrorType.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_read_timeout_is_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = client_for_handler(handler)

        with pytest.raises(PaymentError) as exc_info:
            await client.process_payment(REQUEST)

        assert exc_info.value.error_type == PaymentErrorType.TIMEOUT

    @pytest.mark.asyncio
    async def test_request_body_and_path(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.read()
            return httpx.Response(
                200,
                json={
                    "id": "pmt_1",
                    "status": "completed",
                    "amount": 20.0,
                    "currency": "USD",
                    "processed_at": "2024-01-01T00:00:00Z",
                    "fees": 0.5,
                },
            )

        client = client_for_handler(handler)
        response = await client.process_payment(REQUEST)

        assert seen["path"] == "/payments"
        assert b'"subscription_id":"sub_1"' in seen["body"]
        assert b"currency" not in seen["body"]
        assert response.id == "pmt_1"

    @pytest.mark.unit
    def test_factory_selects_backend(self) -> None:
        assert isinstance(create_payment_gateway(Settings(payment_backend="http")), HttpPaymentClient)
        assert isinstance(
            create_payment_gateway(Settings(payment_backend="simulated")), SimulatedPaymentProcessor
        )
