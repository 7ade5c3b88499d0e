"""
Subscription workflow.

Creating a subscription is a two-step saga:
1. Provision the record in the repository (compensated by deleting it)
2. Charge the plan price through the payment gateway

If the charge fails for any reason (declined, timed out, cancelled) the
provisioned record is deleted exactly once before the failure is reported.
Update, delete and reads go straight to the repository.
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from subscription_platform.integrations.payment_gateway import (
    PaymentError,
    PaymentErrorType,
    PaymentGateway,
    PaymentRequest,
    PaymentResponse,
)
from subscription_platform.monitoring.metrics import metrics

from .models import Subscription, get_plan_price, is_valid_plan
from .repository import SubscriptionRepository
from .saga import Saga

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class SubscriptionError(Exception):
    """Base exception for subscription workflow errors."""

    pass


class SubscriptionValidationError(SubscriptionError):
    """Raised when subscription input fails domain validation."""

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


class SubscriptionPaymentError(SubscriptionError):
    """Raised when the charge for a new subscription fails."""

    def __init__(self, subscription_id: str, payment_error: Exception):
        super().__init__(f"Payment processing failed for {subscription_id}: {payment_error}")
        self.subscription_id = subscription_id
        self.payment_error = payment_error

    @property
    def error_type(self) -> str:
        if isinstance(self.payment_error, PaymentError):
            return self.payment_error.error_type.value
        return "unknown"


def validate_subscription_input(user_id: str, plan: str) -> None:
    """
    Domain validation shared by create and update.

    Raises:
        SubscriptionValidationError: If user_id is empty or plan is unknown
    """
    if not user_id:
        raise SubscriptionValidationError("user_id is required", "user_id")
    if not plan:
        raise SubscriptionValidationError("plan is required", "plan")
    if not is_valid_plan(plan):
        raise SubscriptionValidationError(f"Invalid plan: {plan}", "plan")


class SubscriptionWorkflow:
    """
    Coordinates the repository and the payment gateway.

    Invariant: no subscription outlives a failed payment for it.
    """

    def __init__(
        self,
        repository: SubscriptionRepository,
        payment_gateway: PaymentGateway,
        payment_timeout: Optional[float] = None,
    ):
        """
        Initialize workflow.

        Args:
            repository: Subscription store
            payment_gateway: Payment processor used to charge new subscriptions
            payment_timeout: Default deadline for the charge (seconds)
        """
        self.repository = repository
        self.payment_gateway = payment_gateway
        self.payment_timeout = payment_timeout

    def _refresh_active_gauge(self) -> None:
        metrics.set_active_subscriptions(self.repository.count())

    async def create_subscription(
        self, user_id: str, plan: str, timeout: Optional[float] = None
    ) -> Tuple[Subscription, PaymentResponse]:
        """
        Create and pay for a subscription.

        Args:
            user_id: Owning user
            plan: Subscription tier
            timeout: Charge deadline, overriding the workflow default

        Returns:
            Tuple[Subscription, PaymentResponse]: The stored record and its payment

        Raises:
            SubscriptionValidationError: If input is invalid (nothing is stored)
            SubscriptionPaymentError: If the charge failed (record was removed)
            asyncio.CancelledError: If the caller cancelled (record was removed)
        """
        try:
            validate_subscription_input(user_id, plan)
        except SubscriptionValidationError as e:
            metrics.record_subscription_operation("create", "invalid")
            logger.warning("subscription_validation_failed", field=e.field, error=str(e))
            raise

        deadline = timeout if timeout is not None else self.payment_timeout

        async def provision(ctx: Dict[str, Any]) -> Subscription:
            subscription = self.repository.create(user_id, plan)
            logger.debug(
                "subscription_provisioned",
                subscription_id=subscription.id,
                user_id=user_id,
                plan=plan,
            )
            return subscription

        async def remove_provisioned(ctx: Dict[str, Any], subscription: Subscription) -> None:
            _, found = self.repository.delete(subscription.id)
            error = ctx.get("charge_error")
            if error is None:
                error_type = "cancelled"
            elif isinstance(error, PaymentError):
                error_type = error.error_type.value
            else:
                error_type = "unknown"
            metrics.record_compensation(error_type)
            logger.warning(
                "subscription_compensated",
                subscription_id=subscription.id,
                error_type=error_type,
                found=found,
            )

        async def charge(ctx: Dict[str, Any]) -> PaymentResponse:
            subscription: Subscription = ctx["provision_result"]
            request = PaymentRequest(
                subscription_id=subscription.id,
                amount=get_plan_price(subscription.plan),
                plan=subscription.plan,
            )
            try:
                return await self.payment_gateway.process_payment(request, timeout=deadline)
            except Exception as e:
                ctx["charge_error"] = e
                raise

        saga = Saga(name="create_subscription")
        saga.add_step("provision", provision, remove_provisioned)
        saga.add_step("charge", charge)

        with tracer.start_as_current_span("create_subscription") as span:
            span.set_attribute("user.id", user_id)
            span.set_attribute("subscription.plan", plan)

            try:
                result = await saga.execute()
            except asyncio.CancelledError:
                metrics.record_subscription_operation("create", "cancelled")
                self._refresh_active_gauge()
                raise

            subscription = result.context.get("provision_result")
            self._refresh_active_gauge()

            if not result.succeeded:
                error = result.error or PaymentError(
                    "payment did not complete", PaymentErrorType.PROCESSING_ERROR
                )
                span.record_exception(error)
                span.set_status(Status(StatusCode.ERROR, str(error)))

                if subscription is None:
                    # Provisioning itself failed; nothing to report as a payment failure.
                    raise error

                metrics.record_subscription_operation("create", "payment_failed")
                logger.error(
                    "subscription_payment_failed",
                    subscription_id=subscription.id,
                    user_id=user_id,
                    plan=plan,
                    amount=subscription.price,
                    error=str(error),
                )
                raise SubscriptionPaymentError(subscription.id, error) from error

            payment: PaymentResponse = result.context["charge_result"]
            span.set_attribute("subscription.id", subscription.id)
            span.set_attribute("payment.id", payment.id)

        metrics.record_subscription_operation("create", "success")
        metrics.record_subscription_created(plan)
        logger.info(
            "subscription_created",
            subscription_id=subscription.id,
            user_id=user_id,
            plan=plan,
            amount=subscription.price,
            payment_id=payment.id,
        )
        return subscription, payment

    def get_subscription(self, subscription_id: str) -> Tuple[Optional[Subscription], bool]:
        subscription, found = self.repository.get_by_id(subscription_id)
        metrics.record_subscription_operation("get", "success" if found else "not_found")
        return subscription, found

    def list_subscriptions(self) -> List[Subscription]:
        subscriptions = self.repository.get_all()
        metrics.record_subscription_operation("list", "success")
        return subscriptions

    def update_subscription(
        self, subscription_id: str, user_id: str, plan: str
    ) -> Tuple[Optional[Subscription], bool]:
        """
        Change owner and plan of an existing subscription.

        Raises:
            SubscriptionValidationError: If input is invalid
        """
        try:
            validate_subscription_input(user_id, plan)
        except SubscriptionValidationError:
            metrics.record_subscription_operation("update", "invalid")
            raise

        subscription, found = self.repository.update(subscription_id, user_id, plan)
        if not found:
            metrics.record_subscription_operation("update", "not_found")
            logger.warning("subscription_not_found", operation="update", subscription_id=subscription_id)
            return None, False

        metrics.record_subscription_operation("update", "success")
        logger.info(
            "subscription_updated",
            subscription_id=subscription_id,
            user_id=user_id,
            plan=plan,
        )
        return subscription, True

    def delete_subscription(self, subscription_id: str) -> Tuple[Optional[Subscription], bool]:
        subscription, found = self.repository.delete(subscription_id)
        if not found:
            metrics.record_subscription_operation("delete", "not_found")
            logger.warning("subscription_not_found", operation="delete", subscription_id=subscription_id)
            return None, False

        self._refresh_active_gauge()
        metrics.record_subscription_operation("delete", "success")
        logger.info("subscription_deleted", subscription_id=subscription_id)
        return subscription, True
