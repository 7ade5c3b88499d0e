"""Monitoring and observability package."""
from .logging import setup_logging
from .metrics import metrics
from .tracing import setup_tracing

__all__ = ["metrics", "setup_logging", "setup_tracing"]
