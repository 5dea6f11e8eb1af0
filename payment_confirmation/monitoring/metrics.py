"""
Prometheus metrics for payment confirmation monitoring.

Tracks:
- Verification requests by result
- Webhook deliveries by endpoint and outcome
- Webhook processing duration
- Transaction store upserts (applied vs ignored)
- Analytics event deliveries
"""
from prometheus_client import Counter, Histogram

# Verification metrics
verification_requests_total = Counter(
    "verification_requests_total",
    "Total payment verification requests",
    ["result"],  # verified, unverified, not_found, invalid, error
)

# Webhook metrics
webhook_deliveries_total = Counter(
    "webhook_deliveries_total",
    "Total webhook deliveries received",
    ["endpoint", "outcome"],  # applied, duplicate, ignored, rejected, unauthorized, error
)

webhook_processing_duration_seconds = Histogram(
    "webhook_processing_duration_seconds",
    "Webhook processing duration in seconds",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Store metrics
transaction_upserts_total = Counter(
    "transaction_upserts_total",
    "Total transaction upserts",
    ["outcome"],  # applied, ignored
)

store_operation_duration_seconds = Histogram(
    "store_operation_duration_seconds",
    "Transaction store call duration in seconds",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Analytics metrics
analytics_events_total = Counter(
    "analytics_events_total",
    "Total analytics event deliveries",
    ["event_type", "outcome"],  # delivered, failed, timeout
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_verification(result: str) -> None:
        """Record a verification request outcome."""
        verification_requests_total.labels(result=result).inc()

    @staticmethod
    def record_webhook(endpoint: str, outcome: str, duration_seconds: float) -> None:
        """Record webhook delivery processing."""
        webhook_deliveries_total.labels(endpoint=endpoint, outcome=outcome).inc()
        webhook_processing_duration_seconds.labels(endpoint=endpoint).observe(duration_seconds)

    @staticmethod
    def record_upsert(applied: bool, duration_seconds: float) -> None:
        """Record a transaction upsert."""
        transaction_upserts_total.labels(outcome="applied" if applied else "ignored").inc()
        store_operation_duration_seconds.labels(operation="upsert").observe(duration_seconds)

    @staticmethod
    def record_store_read(duration_seconds: float) -> None:
        """Record a transaction lookup."""
        store_operation_duration_seconds.labels(operation="get").observe(duration_seconds)

    @staticmethod
    def record_event_delivery(event_type: str, outcome: str) -> None:
        """Record analytics event delivery."""
        analytics_events_total.labels(event_type=event_type, outcome=outcome).inc()


# Export singleton instance
metrics = MetricsCollector()
