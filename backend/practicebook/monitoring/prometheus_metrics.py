"""
Prometheus metrics for the booking backend.

Service timings come from the ``@BaseService.measure_operation`` decorator;
domain counters track booking transitions and degraded side effects.
"""

from typing import Optional, cast

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "practicebook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

service_operations_total = Counter(
    "practicebook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "practicebook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "practicebook_booking_transitions_total",
    "Booking status transitions",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

side_effect_failures_total = Counter(
    "practicebook_side_effect_failures_total",
    "Degraded side effects (calendar, payment session, notification)",
    ["system", "step"],
    registry=REGISTRY,
)

refunds_total = Counter(
    "practicebook_refunds_total",
    "Refund attempts during cancellation",
    ["status"],  # success | error
    registry=REGISTRY,
)

series_extension_total = Counter(
    "practicebook_series_extension_total",
    "Per-series outcome of the extension scheduler",
    ["outcome"],  # created | skipped | ended | failed
    registry=REGISTRY,
)

bill_notifications_total = Counter(
    "practicebook_bill_notifications_total",
    "Scheduled payment-request emails",
    ["status"],  # sent | failed
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingOrchestrator')
            operation: Operation name (e.g., 'cancel_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_transition(from_status: str, to_status: str) -> None:
        booking_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_side_effect_failure(system: str, step: str) -> None:
        side_effect_failures_total.labels(system=system, step=step).inc()

    @staticmethod
    def record_refund(status: str) -> None:
        refunds_total.labels(status=status).inc()

    @staticmethod
    def record_series_extension(outcome: str) -> None:
        series_extension_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_bill_notification(status: str) -> None:
        bill_notifications_total.labels(status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
