"""
Pytest configuration and fixtures.
"""
import asyncio
from typing import Any, AsyncGenerator, Callable, List, Optional, Sequence

import httpx
import pytest
import pytest_asyncio

from subscription_platform.api.main import create_app
from subscription_platform.api.payment_app import create_payment_app
from subscription_platform.config import Settings
from subscription_platform.core.repository import SubscriptionRepository
from subscription_platform.core.workflow import SubscriptionWorkflow
from subscription_platform.integrations.payment_gateway import (
    PaymentErrorType,
    PaymentGateway,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    calculate_fees,
    utcnow,
)
from subscription_platform.integrations.payment_simulator import SimulatedPaymentProcessor


class ScriptedRandom:
    """Random source that replays fixed draws."""

    def __init__(self, draws: Sequence[float] = (), choice_index: int = 0, uniform_value: Optional[float] = None):
        self._draws = list(draws)
        self.choice_index = choice_index
        self.uniform_value = uniform_value
        self.uniform_calls: List[tuple] = []

    def random(self) -> float:
        if not self._draws:
            return 0.99
        return self._draws.pop(0)

    def choice(self, seq: Sequence[Any]) -> Any:
        return seq[self.choice_index]

    def uniform(self, a: float, b: float) -> float:
        self.uniform_calls.append((a, b))
        return b if self.uniform_value is None else self.uniform_value


class RecordingGateway(PaymentGateway):
    """Gateway that records requests and replays a scripted outcome."""

    backend_name = "recording"

    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.requests: List[PaymentRequest] = []

    async def _process(self, request: PaymentRequest) -> PaymentResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return PaymentResponse(
            id=f"pmt_test_{len(self.requests)}",
            status=PaymentStatus.COMPLETED,
            amount=request.amount,
            currency=request.currency or "USD",
            processed_at=utcnow(),
            fees=calculate_fees(request.amount, request.plan),
        )


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no artificial latency or failures."""
    return Settings(
        app_name="subscription-service-test",
        app_env="test",
        log_level="DEBUG",
        processing_delay_ms=0,
        extra_delay_max_ms=0,
        enable_failures=False,
        tracing_enabled=False,
        payment_backend="simulated",
    )


@pytest.fixture
def repository() -> SubscriptionRepository:
    return SubscriptionRepository()


@pytest.fixture
def fast_processor() -> SimulatedPaymentProcessor:
    """Simulator that always succeeds without delay."""
    return SimulatedPaymentProcessor(processing_delay=0, extra_delay_max=0)


@pytest.fixture
def failing_processor() -> Callable[[PaymentErrorType], SimulatedPaymentProcessor]:
    """Factory for a simulator that always fails with the given kind."""

    def _build(error_type: PaymentErrorType) -> SimulatedPaymentProcessor:
        return SimulatedPaymentProcessor(
            processing_delay=0,
            enable_failures=True,
            failure_rate=1.0,
            failure_types=[error_type],
            extra_delay_max=0,
        )

    return _build


@pytest.fixture
def recording_gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def workflow(repository: SubscriptionRepository, fast_processor: SimulatedPaymentProcessor) -> SubscriptionWorkflow:
    return SubscriptionWorkflow(repository=repository, payment_gateway=fast_processor, payment_timeout=5.0)


@pytest_asyncio.fixture
async def api_client(
    test_settings: Settings, workflow: SubscriptionWorkflow
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """Client for the subscription service backed by ``workflow``."""
    app = create_app(settings=test_settings, workflow=workflow)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def payment_api_client(
    test_settings: Settings, fast_processor: SimulatedPaymentProcessor
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """Client for the payment service backed by an always-succeeding simulator."""
    app = create_payment_app(settings=test_settings, processor=fast_processor)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
