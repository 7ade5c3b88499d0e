"""
Subscription domain models.

Subscriptions are frozen value objects: the store hands out the same immutable
instance it holds, so no caller can mutate store state through a returned
record. Updates build a new instance with ``model_copy``.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class Plan(str, Enum):
    """Subscription tiers offered to customers."""

    BASIC = "basic"
    PREMIUM = "premium"


PLAN_PRICES: Dict[str, float] = {
    Plan.BASIC.value: 10.0,
    Plan.PREMIUM.value: 20.0,
}

SUBSCRIPTION_TERM_YEARS = 1


def is_valid_plan(plan: str) -> bool:
    """Check whether ``plan`` names an offered tier."""
    return plan in PLAN_PRICES


def get_plan_price(plan: str) -> float:
    """
    Price for a plan.

    Unknown plans price at 0.0; validate with ``is_valid_plan`` first.
    """
    return PLAN_PRICES.get(plan, 0.0)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_years(moment: datetime, years: int) -> datetime:
    """Same wall-clock time ``years`` later; Feb 29 rolls over to Mar 1."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, month=3, day=1)


class Subscription(BaseModel):
    """A customer's subscription record."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque subscription identifier")
    user_id: str = Field(..., description="Owning user")
    plan: str = Field(..., description="Subscription tier")
    start_date: datetime = Field(..., description="Start of the validity window")
    end_date: datetime = Field(..., description="End of the validity window")

    @classmethod
    def start(cls, subscription_id: str, user_id: str, plan: str, now: datetime) -> "Subscription":
        """New subscription valid for one term from ``now``."""
        return cls(
            id=subscription_id,
            user_id=user_id,
            plan=plan,
            start_date=now,
            end_date=add_years(now, SUBSCRIPTION_TERM_YEARS),
        )

    @property
    def price(self) -> float:
        return get_plan_price(self.plan)
