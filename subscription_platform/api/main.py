"""
Subscription service FastAPI application.

Wires the repository, the configured payment gateway and the workflow, and
adds:
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics
- Optional OpenTelemetry tracing
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from subscription_platform import __version__
from subscription_platform.config import Settings, get_settings
from subscription_platform.core.repository import SubscriptionRepository
from subscription_platform.core.workflow import SubscriptionWorkflow
from subscription_platform.integrations import create_payment_gateway
from subscription_platform.monitoring.logging import setup_logging
from subscription_platform.monitoring.tracing import setup_tracing

from .middleware import install_exception_handlers, install_request_middleware
from .routes import monitoring_router, subscription_router

logger = structlog.get_logger(__name__)


def build_workflow(settings: Settings) -> SubscriptionWorkflow:
    """Default object graph: fresh store plus the configured gateway."""
    return SubscriptionWorkflow(
        repository=SubscriptionRepository(),
        payment_gateway=create_payment_gateway(settings),
        payment_timeout=settings.payment_timeout_seconds,
    )


def create_app(
    settings: Optional[Settings] = None,
    workflow: Optional[SubscriptionWorkflow] = None,
) -> FastAPI:
    """
    Build the subscription service.

    Args:
        settings: Settings (default: environment)
        workflow: Pre-built workflow, e.g. with a scripted payment gateway

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)
    workflow = workflow or build_workflow(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            payment_backend=workflow.payment_gateway.backend_name,
        )

        yield

        logger.info("application_shutdown")
        aclose = getattr(workflow.payment_gateway, "aclose", None)
        if aclose is not None:
            await aclose()

    app = FastAPI(
        title="Subscription Service",
        description=(
            "Subscription management backed by an in-memory store. New subscriptions "
            "are charged through the payment gateway and rolled back if payment fails."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.workflow = workflow
    app.state.service_name = settings.app_name
    app.state.metrics_enabled = settings.metrics_enabled

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_request_middleware(app, settings.app_name)
    install_exception_handlers(app)

    app.include_router(subscription_router)
    app.include_router(monitoring_router)

    if settings.tracing_enabled:
        setup_tracing(settings.app_name, settings.otlp_endpoint, settings.app_env)
        FastAPIInstrumentor.instrument_app(app)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "subscription_platform.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
