"""
Payment gateway contract shared by every payment transport.

A gateway turns a ``PaymentRequest`` into a ``PaymentResponse`` or raises a
``PaymentError``. The subscription workflow only depends on this module, so
the in-process simulator and the HTTP client are interchangeable.
"""
import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, Field

from subscription_platform.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_FEE_RATE = 0.029
PLAN_FEE_RATES: Dict[str, float] = {
    "premium": 0.025,
    "enterprise": 0.02,
}
MINIMUM_FEE = 0.30


class PaymentStatus(str, Enum):
    """Lifecycle states reported for a payment."""

    COMPLETED = "completed"
    FAILED = "failed"


class PaymentErrorType(str, Enum):
    """Classification of payment failures."""

    VALIDATION = "validation_error"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_CARD = "invalid_card"
    NETWORK_ERROR = "network_error"
    PROCESSING_ERROR = "processing_error"
    TIMEOUT = "timeout"


# Failures caused by the payer rather than the processor.
CLIENT_ERROR_TYPES = frozenset(
    {
        PaymentErrorType.VALIDATION,
        PaymentErrorType.INSUFFICIENT_FUNDS,
        PaymentErrorType.INVALID_CARD,
    }
)


class PaymentError(Exception):
    """Base exception for payment failures."""

    def __init__(
        self,
        message: str,
        error_type: PaymentErrorType,
        code: Optional[str] = None,
        payment_id: Optional[str] = None,
    ):
        """
        Initialize payment error.

        Args:
            message: Human readable reason
            error_type: Classification of the failure
            code: Machine readable code (defaults to the upper-cased type)
            payment_id: Identifier of the failed payment, when one was issued
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code or error_type.value.upper()
        self.payment_id = payment_id

    def __str__(self) -> str:
        return f"payment error [{self.code}]: {self.message}"

    @property
    def is_client_error(self) -> bool:
        return self.error_type in CLIENT_ERROR_TYPES

    def to_dict(self) -> Dict[str, Any]:
        """Error body used by the payment service API."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "type": self.error_type.value,
            }
        }


class PaymentValidationError(PaymentError):
    """Raised when a payment request is malformed."""

    def __init__(self, message: str, code: str):
        super().__init__(message, PaymentErrorType.VALIDATION, code=code)


class PaymentRequest(BaseModel):
    """Charge request for one subscription."""

    subscription_id: str = Field(default="", description="Subscription being paid for")
    amount: float = Field(default=0.0, description="Amount to charge")
    plan: str = Field(default="", description="Plan being purchased")
    currency: Optional[str] = Field(default=None, description="Currency code (default USD)")
    method: Optional[str] = Field(default=None, description="Payment method")


class PaymentResponse(BaseModel):
    """Outcome of a processed payment."""

    id: str = Field(..., description="Payment ID")
    status: PaymentStatus = Field(..., description="Payment status")
    amount: float = Field(..., description="Charged amount")
    currency: str = Field(..., description="Currency code")
    processed_at: datetime = Field(..., description="Processing timestamp")
    fees: float = Field(default=0.0, description="Processing fee")


def validate_payment_request(request: PaymentRequest) -> None:
    """
    Validate payment request parameters.

    Raises:
        PaymentValidationError: If validation fails
    """
    if not request.subscription_id:
        raise PaymentValidationError("subscription ID is required", "MISSING_SUBSCRIPTION_ID")

    if request.amount <= 0:
        raise PaymentValidationError("amount must be greater than 0", "INVALID_AMOUNT")

    if not request.plan:
        raise PaymentValidationError("plan is required", "MISSING_PLAN")


def calculate_fees(amount: float, plan: str) -> float:
    """Processing fee for ``amount`` on ``plan``, never below the minimum fee."""
    fee = amount * PLAN_FEE_RATES.get(plan, DEFAULT_FEE_RATE)
    if fee < MINIMUM_FEE:
        fee = MINIMUM_FEE
    return fee


def generate_payment_id() -> str:
    return f"pmt_{time.time_ns()}_{uuid.uuid4().hex[:8]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentGateway(ABC):
    """
    Abstract payment processor.

    Subclasses implement ``_process``; ``process_payment`` applies the caller's
    deadline, tracing and metrics uniformly.
    """

    backend_name = "abstract"

    @abstractmethod
    async def _process(self, request: PaymentRequest) -> PaymentResponse:
        """Charge the request or raise ``PaymentError``."""

    async def process_payment(
        self, request: PaymentRequest, timeout: Optional[float] = None
    ) -> PaymentResponse:
        """
        Process a payment within an optional deadline.

        Args:
            request: Payment request
            timeout: Seconds before the call is abandoned (None for no deadline)

        Returns:
            PaymentResponse: Completed payment

        Raises:
            PaymentError: If validation fails, the processor declines, or the
                deadline elapses (error type ``timeout``)
        """
        start_time = time.monotonic()

        with tracer.start_as_current_span("process_payment") as span:
            span.set_attribute("payment.backend", self.backend_name)
            span.set_attribute("subscription.id", request.subscription_id)
            span.set_attribute("subscription.plan", request.plan)
            span.set_attribute("payment.amount", request.amount)

            try:
                response = await asyncio.wait_for(self._process(request), timeout=timeout)
            except asyncio.TimeoutError:
                message = (
                    f"payment not completed within {timeout:.3f}s"
                    if timeout is not None
                    else "payment processing timed out"
                )
                error = PaymentError(
                    message,
                    PaymentErrorType.TIMEOUT,
                    code="DEADLINE_EXCEEDED",
                )
                self._record_failure(span, request, error, start_time)
                raise error
            except PaymentError as e:
                self._record_failure(span, request, e, start_time)
                raise

            duration = time.monotonic() - start_time
            span.set_attribute("payment.id", response.id)
            span.set_attribute("payment.status", response.status.value)
            span.set_attribute("payment.fees", response.fees)
            metrics.record_payment(request.plan, response.status.value, self.backend_name, duration)
            metrics.record_payment_fees(request.plan, response.fees)

            logger.info(
                "payment_processed",
                backend=self.backend_name,
                payment_id=response.id,
                subscription_id=request.subscription_id,
                status=response.status.value,
                amount=response.amount,
                fees=response.fees,
                duration_seconds=duration,
            )
            return response

    def _record_failure(
        self, span: Any, request: PaymentRequest, error: PaymentError, start_time: float
    ) -> None:
        duration = time.monotonic() - start_time
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, error.message))
        span.set_attribute("error.type", error.error_type.value)
        span.set_attribute("error.code", error.code)
        metrics.record_payment(
            request.plan, PaymentStatus.FAILED.value, self.backend_name, duration
        )
        metrics.record_payment_failure(error.error_type.value)

        log = logger.warning if error.is_client_error else logger.error
        log(
            "payment_failed",
            backend=self.backend_name,
            subscription_id=request.subscription_id,
            error_type=error.error_type.value,
            error_code=error.code,
            error=error.message,
            duration_seconds=duration,
        )

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": self.backend_name}
