"""
API routes for the subscription service.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from subscription_platform.core.models import Subscription
from subscription_platform.core.workflow import (
    SubscriptionPaymentError,
    SubscriptionValidationError,
    SubscriptionWorkflow,
)

from .schemas import HealthCheckResponse, SubscriptionRequest, SubscriptionResponse

logger = structlog.get_logger(__name__)

HEALTH_CHECK_TIMEOUT_SECONDS = 5.0

subscription_router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])
monitoring_router = APIRouter(tags=["monitoring"])


def get_workflow(request: Request) -> SubscriptionWorkflow:
    return request.app.state.workflow


def _validation_http_error(request: SubscriptionRequest) -> HTTPException:
    if not request.user_id or not request.plan:
        detail = "Missing required fields"
    else:
        detail = "Invalid plan"
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@subscription_router.post(
    "",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a subscription",
    description="Provision a subscription and charge its plan price",
)
async def create_subscription(
    request: SubscriptionRequest,
    workflow: SubscriptionWorkflow = Depends(get_workflow),
) -> Subscription:
    """
    Create a subscription.

    The record only survives if the payment succeeds.
    """
    logger.debug("api_create_subscription_request", user_id=request.user_id, plan=request.plan)

    try:
        subscription, _ = await workflow.create_subscription(request.user_id, request.plan)
    except SubscriptionValidationError as e:
        logger.warning("api_create_subscription_validation_error", error=str(e))
        raise _validation_http_error(request)
    except SubscriptionPaymentError as e:
        logger.error(
            "api_create_subscription_payment_error",
            subscription_id=e.subscription_id,
            error_type=e.error_type,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment processing failed",
        )

    return subscription


@subscription_router.get(
    "",
    response_model=List[SubscriptionResponse],
    summary="List subscriptions",
)
async def list_subscriptions(
    workflow: SubscriptionWorkflow = Depends(get_workflow),
) -> List[Subscription]:
    return workflow.list_subscriptions()


@subscription_router.get(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get a subscription",
)
async def get_subscription(
    subscription_id: str,
    workflow: SubscriptionWorkflow = Depends(get_workflow),
) -> Subscription:
    subscription, found = workflow.get_subscription(subscription_id)
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return subscription


@subscription_router.put(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Update a subscription",
    description="Replace the owning user and plan; dates and ID are unchanged",
)
async def update_subscription(
    subscription_id: str,
    request: SubscriptionRequest,
    workflow: SubscriptionWorkflow = Depends(get_workflow),
) -> Subscription:
    try:
        subscription, found = workflow.update_subscription(
            subscription_id, request.user_id, request.plan
        )
    except SubscriptionValidationError as e:
        logger.warning("api_update_subscription_validation_error", error=str(e))
        raise _validation_http_error(request)

    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return subscription


@subscription_router.delete(
    "/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a subscription",
)
async def delete_subscription(
    subscription_id: str,
    workflow: SubscriptionWorkflow = Depends(get_workflow),
) -> Response:
    _, found = workflow.delete_subscription(subscription_id)
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
)
async def health(request: Request, response: Response) -> Dict[str, Any]:
    """
    Health of the service and its payment dependency.

    Healthy only if every check is; otherwise answers 503 with the same body.
    """
    workflow: SubscriptionWorkflow = request.app.state.workflow
    try:
        payment = await asyncio.wait_for(
            workflow.payment_gateway.health_check(), timeout=HEALTH_CHECK_TIMEOUT_SECONDS
        )
    except Exception as e:
        logger.error("payment_gateway_health_check_failed", error=str(e) or type(e).__name__)
        payment = {
            "status": "unhealthy",
            "backend": workflow.payment_gateway.backend_name,
            "error": str(e) or type(e).__name__,
        }

    checks = {
        "subscriptions": {"status": "healthy", "count": workflow.repository.count()},
        "payment_gateway": payment,
    }
    all_healthy = all(check.get("status") == "healthy" for check in checks.values())
    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "service": request.app.state.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics(request: Request) -> Response:
    """Expose Prometheus metrics."""
    if not request.app.state.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
