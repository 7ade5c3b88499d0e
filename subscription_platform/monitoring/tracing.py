"""
OpenTelemetry tracing setup.

Spans are opened around the subscription workflow steps and the payment call.
When no OTLP endpoint is configured the global provider is still installed so
spans carry valid trace IDs for log correlation and header propagation, but
nothing is exported.
"""
from typing import Optional

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from subscription_platform import __version__

logger = structlog.get_logger(__name__)

_configured = False


def create_resource(service_name: str, environment: str = "development") -> Resource:
    """Resource attributes attached to every span from this service."""
    return Resource(
        attributes={
            SERVICE_NAME: service_name,
            SERVICE_VERSION: __version__,
            DEPLOYMENT_ENVIRONMENT: environment,
        }
    )


def setup_tracing(
    service_name: str,
    otlp_endpoint: Optional[str] = None,
    environment: str = "development",
    sample_rate: float = 1.0,
) -> trace.Tracer:
    """
    Install the global tracer provider.

    Only the first call installs a provider; OpenTelemetry refuses to replace
    the global one, so later calls just hand back a tracer.

    Args:
        service_name: Service identifier
        otlp_endpoint: OTel Collector gRPC endpoint, or None to skip export
        environment: Deployment environment name
        sample_rate: Fraction of root traces to sample (0.0 to 1.0)

    Returns:
        trace.Tracer: Tracer for the calling module
    """
    global _configured

    if not _configured:
        provider = TracerProvider(
            resource=create_resource(service_name, environment),
            sampler=ParentBased(TraceIdRatioBased(sample_rate)),
        )

        if otlp_endpoint:
            exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
            provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("tracing_exporter_configured", service=service_name, endpoint=otlp_endpoint)
        else:
            logger.info("tracing_export_disabled", service=service_name)

        trace.set_tracer_provider(provider)
        _configured = True

    return trace.get_tracer(service_name)
