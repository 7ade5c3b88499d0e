"""
Structured logging configuration.

Both services log JSON through structlog. Every event carries the emitting
service's name and environment, the request ID bound by the HTTP middleware,
and the active trace/span IDs so a log line can be matched to its trace.
"""
import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from opentelemetry import trace
from pythonjsonlogger import jsonlogger

from subscription_platform.config import Settings, get_settings

EventDict = Dict[str, Any]

QUIET_LOGGERS = ("httpx", "uvicorn.access")


class ServiceContext:
    """Processor stamping a fixed service identity onto every event."""

    def __init__(self, service_name: str, environment: str):
        self.service_name = service_name
        self.environment = environment

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", self.service_name)
        event_dict.setdefault("app_env", self.environment)
        return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Attach the current trace and span IDs, when a span is recording."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def build_processors(service_name: str, environment: str) -> List[Any]:
    """structlog processor chain for one service."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        ServiceContext(service_name, environment),
        add_trace_context,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: Optional[Settings] = None, service_name: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root handler for one service.

    Args:
        settings: Settings supplying level and environment (default: environment)
        service_name: Name stamped on every event (default: ``settings.app_name``)
    """
    settings = settings or get_settings()
    service_name = service_name or settings.app_name

    structlog.configure(
        processors=build_processors(service_name, settings.app_env),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # structlog renders JSON itself; this handler covers stdlib loggers (uvicorn, httpx).
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
            static_fields={"service": service_name},
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        service=service_name,
    )
