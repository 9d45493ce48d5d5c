"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
orders_created_total = Counter(
    "orders_created_total",
    "Total number of orders created",
    ["reference_type", "payment_method"],
)

orders_completed_total = Counter(
    "orders_completed_total",
    "Total number of orders settled (ledger written, entitlement granted)",
    ["reference_type"],
)

orders_confirm_duplicates_total = Counter(
    "orders_confirm_duplicates_total",
    "Confirmations for orders that were already completed",
)

orders_failed_total = Counter(
    "orders_failed_total",
    "Total orders moved to failed/cancelled",
    ["status", "reason"],
)

invoice_failures_total = Counter(
    "invoice_failures_total",
    "Invoice creation failures (order rolled back)",
)

pre_checkout_total = Counter(
    "pre_checkout_total",
    "Pre-checkout validations",
    ["result"],  # approved / rejected
)

insufficient_funds_total = Counter(
    "insufficient_funds_total",
    "Balance purchases rejected for insufficient funds",
)

telegram_requests_total = Counter(
    "telegram_requests_total",
    "Total Telegram API requests",
    ["method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
telegram_request_duration_seconds = Histogram(
    "telegram_request_duration_seconds",
    "Telegram API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
