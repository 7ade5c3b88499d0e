"""Payment gateway transports."""
from typing import Optional

from subscription_platform.config import Settings, get_settings

from .payment_client import HttpPaymentClient
from .payment_gateway import (
    PaymentError,
    PaymentErrorType,
    PaymentGateway,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    PaymentValidationError,
    calculate_fees,
)
from .payment_simulator import SimulatedPaymentProcessor


def create_payment_gateway(settings: Optional[Settings] = None) -> PaymentGateway:
    """Build the gateway selected by ``settings.payment_backend``."""
    settings = settings or get_settings()
    if settings.payment_backend == "http":
        return HttpPaymentClient.from_settings(settings)
    return SimulatedPaymentProcessor.from_settings(settings)


__all__ = [
    "HttpPaymentClient",
    "PaymentError",
    "PaymentErrorType",
    "PaymentGateway",
    "PaymentRequest",
    "PaymentResponse",
    "PaymentStatus",
    "PaymentValidationError",
    "SimulatedPaymentProcessor",
    "calculate_fees",
    "create_payment_gateway",
]
