"""
Payment service FastAPI application.

Exposes the simulated payment processor over HTTP so the subscription service
can reach it through ``HttpPaymentClient``. Trace context sent by the caller
is continued here.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from opentelemetry import context as otel_context
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagate import extract
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from subscription_platform import __version__
from subscription_platform.config import Settings, get_settings
from subscription_platform.integrations.payment_gateway import (
    PaymentError,
    PaymentGateway,
    PaymentRequest,
    PaymentResponse,
)
from subscription_platform.integrations.payment_simulator import SimulatedPaymentProcessor
from subscription_platform.monitoring.logging import setup_logging
from subscription_platform.monitoring.tracing import setup_tracing

from .middleware import install_exception_handlers, install_request_middleware

logger = structlog.get_logger(__name__)

SERVICE_NAME = "payment-service"
HEALTH_CHECK_TIMEOUT_SECONDS = 5.0


def create_payment_app(
    settings: Optional[Settings] = None,
    processor: Optional[PaymentGateway] = None,
) -> FastAPI:
    """
    Build the payment service.

    Args:
        settings: Settings (default: environment)
        processor: Payment processor (default: simulator configured from settings)

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings, service_name=SERVICE_NAME)
    processor = processor or SimulatedPaymentProcessor.from_settings(settings)

    app = FastAPI(
        title="Payment Service",
        description="Simulated payment processor with latency and failure injection.",
        version=__version__,
    )
    app.state.processor = processor

    install_request_middleware(app, SERVICE_NAME)
    install_exception_handlers(app)

    async def process_payment(request: Request, payment: PaymentRequest) -> Any:
        token = otel_context.attach(extract(request.headers))
        try:
            response: PaymentResponse = await app.state.processor.process_payment(payment)
        except PaymentError as e:
            status_code = (
                status.HTTP_400_BAD_REQUEST
                if e.is_client_error
                else status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            return JSONResponse(status_code=status_code, content=e.to_dict())
        finally:
            otel_context.detach(token)

        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=response.model_dump(mode="json"),
        )

    for path in ("/payments", "/process"):
        app.add_api_route(
            path,
            process_payment,
            methods=["POST"],
            tags=["payments"],
            summary="Process a payment",
            responses={200: {"model": PaymentResponse}},
        )

    @app.get("/health", tags=["monitoring"], summary="Health check")
    async def health() -> Dict[str, Any]:
        try:
            await asyncio.wait_for(
                app.state.processor.health_check(), timeout=HEALTH_CHECK_TIMEOUT_SECONDS
            )
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service unhealthy"
            )

        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        if not settings.metrics_enabled:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    if settings.tracing_enabled:
        setup_tracing(SERVICE_NAME, settings.otlp_endpoint, settings.app_env)
        FastAPIInstrumentor.instrument_app(app)

    return app


app = create_payment_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "subscription_platform.api.payment_app:app",
        host=settings.api_host,
        port=settings.payment_api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
