"""
HTTP middleware shared by both services.

Binds a request ID into the structlog context, echoes it as ``X-Request-ID``
and records request count/latency metrics.
"""
import time
import uuid
from typing import Any, Awaitable, Callable

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from subscription_platform.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


def _route_template(request: Request) -> str:
    # Route template rather than the raw path.
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def install_request_middleware(app: FastAPI, service_name: str) -> None:
    """Attach request-ID, logging and metrics middleware to ``app``."""

    @app.middleware("http")
    async def add_request_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()
        in_flight = metrics.track_in_flight(service_name)

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        logger.debug(
            "request_started",
            client_host=request.client.host if request.client else None,
        )

        in_flight.inc()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            duration = time.time() - start_time
            metrics.record_http_request(
                service_name, request.method, _route_template(request), response.status_code, duration
            )
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=duration,
            )
            return response

        except Exception as e:
            duration = time.time() - start_time
            metrics.record_http_request(
                service_name, request.method, _route_template(request), 500, duration
            )
            logger.error("request_failed", error=str(e), duration_seconds=duration)
            raise

        finally:
            in_flight.dec()
            structlog.contextvars.clear_contextvars()


def install_exception_handlers(app: FastAPI) -> None:
    """Map undecodable bodies to 400 and unexpected errors to a JSON 500."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("request_decode_failed", path=request.url.path, errors=exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Bad request"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )
