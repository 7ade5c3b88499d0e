"""Core subscription logic."""
from .models import PLAN_PRICES, Plan, Subscription, get_plan_price, is_valid_plan
from .repository import ReadWriteLock, SubscriptionRepository
from .saga import Saga, SagaResult, SagaState
from .workflow import (
    SubscriptionError,
    SubscriptionPaymentError,
    SubscriptionValidationError,
    SubscriptionWorkflow,
)

__all__ = [
    "PLAN_PRICES",
    "Plan",
    "ReadWriteLock",
    "Saga",
    "SagaResult",
    "SagaState",
    "Subscription",
    "SubscriptionError",
    "SubscriptionPaymentError",
    "SubscriptionRepository",
    "SubscriptionValidationError",
    "SubscriptionWorkflow",
    "get_plan_price",
    "is_valid_plan",
]
