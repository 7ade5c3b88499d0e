"""
Simulated payment processor.

Stands in for a real card processor: validates the request, waits a fixed
processing delay, optionally injects a random failure, and otherwise returns a
completed payment with fees. All randomness comes from an injected
``random.Random``-compatible source so tests can pin outcomes.
"""
import asyncio
import random
from typing import Any, Dict, Optional, Protocol, Sequence

import structlog

from subscription_platform.config import Settings, get_settings

from .payment_gateway import (
    PaymentError,
    PaymentErrorType,
    PaymentGateway,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    calculate_fees,
    generate_payment_id,
    utcnow,
    validate_payment_request,
)

logger = structlog.get_logger(__name__)


class RandomSource(Protocol):
    """The subset of ``random.Random`` the simulator draws from."""

    def random(self) -> float:
        ...

    def choice(self, seq: Sequence[Any]) -> Any:
        ...

    def uniform(self, a: float, b: float) -> float:
        ...


SIMULATED_FAILURES: Dict[PaymentErrorType, Dict[str, str]] = {
    PaymentErrorType.INSUFFICIENT_FUNDS: {
        "code": "INSUFFICIENT_FUNDS",
        "message": "insufficient funds in account",
    },
    PaymentErrorType.INVALID_CARD: {
        "code": "INVALID_CARD",
        "message": "invalid or expired card",
    },
    PaymentErrorType.NETWORK_ERROR: {
        "code": "NETWORK_ERROR",
        "message": "network connection failed",
    },
    PaymentErrorType.PROCESSING_ERROR: {
        "code": "PROCESSING_ERROR",
        "message": "payment processor temporarily unavailable",
    },
    PaymentErrorType.TIMEOUT: {
        "code": "TIMEOUT",
        "message": "payment processing timeout",
    },
}


class SimulatedPaymentProcessor(PaymentGateway):
    """In-process payment processor with latency and failure injection."""

    backend_name = "simulated"

    def __init__(
        self,
        processing_delay: float = 0.1,
        enable_failures: bool = False,
        failure_rate: float = 0.1,
        failure_types: Optional[Sequence[PaymentErrorType]] = None,
        extra_delay_probability: float = 0.1,
        extra_delay_max: float = 0.2,
        default_currency: str = "USD",
        rng: Optional[RandomSource] = None,
    ):
        """
        Initialize simulated processor.

        Args:
            processing_delay: Fixed delay applied to every valid request (seconds)
            enable_failures: Whether random failures are injected at all
            failure_rate: Probability of a failure when enabled
            failure_types: Failure kinds to pick from (default: all simulated kinds)
            extra_delay_probability: Chance of extra latency on success
            extra_delay_max: Upper bound for that extra latency (seconds)
            default_currency: Currency reported when the request names none
            rng: Random source (default: a fresh ``random.Random``)
        """
        self.processing_delay = processing_delay
        self.enable_failures = enable_failures
        self.failure_rate = failure_rate
        self.failure_types = list(failure_types or SIMULATED_FAILURES)
        self.extra_delay_probability = extra_delay_probability
        self.extra_delay_max = extra_delay_max
        self.default_currency = default_currency
        self.rng: RandomSource = rng or random.Random()

        logger.info(
            "payment_simulator_initialized",
            processing_delay=processing_delay,
            enable_failures=enable_failures,
            failure_rate=failure_rate,
        )

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, rng: Optional[RandomSource] = None
    ) -> "SimulatedPaymentProcessor":
        settings = settings or get_settings()
        return cls(
            processing_delay=settings.processing_delay_seconds,
            enable_failures=settings.enable_failures,
            failure_rate=settings.failure_rate,
            extra_delay_probability=settings.extra_delay_probability,
            extra_delay_max=settings.extra_delay_max_seconds,
            default_currency=settings.default_currency,
            rng=rng,
        )

    def _should_fail(self) -> bool:
        return self.enable_failures and self.rng.random() < self.failure_rate

    def _pick_failure(self, payment_id: str) -> PaymentError:
        error_type = self.rng.choice(self.failure_types)
        details = SIMULATED_FAILURES[error_type]
        return PaymentError(
            details["message"], error_type, code=details["code"], payment_id=payment_id
        )

    async def _process(self, request: PaymentRequest) -> PaymentResponse:
        validate_payment_request(request)

        if self.processing_delay > 0:
            logger.debug("simulating_processing_delay", delay_seconds=self.processing_delay)
            await asyncio.sleep(self.processing_delay)

        payment_id = generate_payment_id()

        if self._should_fail():
            error = self._pick_failure(payment_id)
            logger.warning(
                "simulated_payment_failure",
                failure_type=error.error_type.value,
                failure_code=error.code,
                subscription_id=request.subscription_id,
            )
            raise error

        response = PaymentResponse(
            id=payment_id,
            status=PaymentStatus.COMPLETED,
            amount=request.amount,
            currency=request.currency or self.default_currency,
            processed_at=utcnow(),
            fees=calculate_fees(request.amount, request.plan),
        )

        if self.extra_delay_max > 0 and self.rng.random() < self.extra_delay_probability:
            extra_delay = self.rng.uniform(0, self.extra_delay_max)
            logger.debug("simulating_extra_delay", delay_seconds=extra_delay)
            await asyncio.sleep(extra_delay)

        return response

    async def health_check(self) -> Dict[str, Any]:
        await asyncio.sleep(0.01)
        return {"status": "healthy", "backend": self.backend_name}
