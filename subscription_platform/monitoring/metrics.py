"""
Prometheus metrics for subscription and payment monitoring.

Tracks:
- Subscription operations by outcome
- Active subscription count
- Payment outcomes by plan and status
- Payment failures by error type
- Compensating deletes
- HTTP request counts and latency
"""
from prometheus_client import Counter, Gauge, Histogram

# Subscription metrics
subscription_operations_total = Counter(
    "subscription_operations_total",
    "Total subscription operations",
    ["operation", "outcome"],  # outcome: success, not_found, invalid, payment_failed
)

subscriptions_created_total = Counter(
    "subscriptions_created_total",
    "Total subscriptions that survived payment",
    ["plan"],
)

subscriptions_active = Gauge(
    "subscriptions_active",
    "Number of subscriptions currently held in the store",
)

subscription_compensations_total = Counter(
    "subscription_compensations_total",
    "Total compensating deletes issued after a failed payment",
    ["error_type"],
)

# Payment metrics
payments_processed_total = Counter(
    "payments_processed_total",
    "Total payment attempts by plan and status",
    ["plan", "status"],
)

payment_failures_total = Counter(
    "payment_failures_total",
    "Total failed payments by error type",
    ["error_type"],
)

payment_processing_duration_seconds = Histogram(
    "payment_processing_duration_seconds",
    "Payment processing duration in seconds",
    ["backend"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 10.0),
)

payment_fees_total = Counter(
    "payment_fees_total",
    "Sum of processing fees charged",
    ["plan"],
)

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "path", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["service", "method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

http_requests_in_flight = Gauge(
    "http_requests_in_flight",
    "HTTP requests currently being served",
    ["service"],
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_subscription_operation(operation: str, outcome: str) -> None:
        """Record a subscription store operation."""
        subscription_operations_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_subscription_created(plan: str) -> None:
        """Record a subscription that was paid for."""
        subscriptions_created_total.labels(plan=plan).inc()

    @staticmethod
    def set_active_subscriptions(count: int) -> None:
        """Set active subscription gauge."""
        subscriptions_active.set(count)

    @staticmethod
    def record_compensation(error_type: str) -> None:
        """Record a compensating delete."""
        subscription_compensations_total.labels(error_type=error_type).inc()

    @staticmethod
    def record_payment(plan: str, status: str, backend: str, duration_seconds: float) -> None:
        """Record a payment attempt."""
        payments_processed_total.labels(plan=plan, status=status).inc()
        payment_processing_duration_seconds.labels(backend=backend).observe(duration_seconds)

    @staticmethod
    def record_payment_failure(error_type: str) -> None:
        """Record payment failure."""
        payment_failures_total.labels(error_type=error_type).inc()

    @staticmethod
    def record_payment_fees(plan: str, fees: float) -> None:
        payment_fees_total.labels(plan=plan).inc(fees)

    @staticmethod
    def record_http_request(
        service: str, method: str, path: str, status_code: int, duration_seconds: float
    ) -> None:
        """Record HTTP request."""
        http_requests_total.labels(
            service=service, method=method, path=path, status_code=str(status_code)
        ).inc()
        http_request_duration_seconds.labels(service=service, method=method, path=path).observe(
            duration_seconds
        )

    @staticmethod
    def track_in_flight(service: str) -> Gauge:
        return http_requests_in_flight.labels(service=service)


# Export singleton instance
metrics = MetricsCollector()
