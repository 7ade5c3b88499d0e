"""FastAPI applications and routes."""
from .schemas import HealthCheckResponse, SubscriptionRequest, SubscriptionResponse

__all__ = [
    "HealthCheckResponse",
    "SubscriptionRequest",
    "SubscriptionResponse",
]
