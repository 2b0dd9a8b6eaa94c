"""Prometheus metrics for snapshot generation, imports and request latency"""

from prometheus_client import Counter, Histogram

# Snapshot generation metrics
snapshot_generation_counter = Counter(
    "budget_snapshot_generation_total",
    "Snapshot generation calls",
    ["operation", "outcome"],  # range | history | many ; success | invalid_range | conflict | storage_failure | error
)

snapshots_processed_counter = Counter(
    "budget_snapshots_processed_total",
    "Days with a known balance processed by snapshot generation",
    ["operation"],
)

snapshot_generation_histogram = Histogram(
    "budget_snapshot_generation_seconds",
    "Snapshot generation duration",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Import metrics
transactions_imported_counter = Counter(
    "budget_transactions_imported_total",
    "Transactions received by the import workflow",
    ["outcome"],  # imported | duplicate
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_generation(operation: str, snapshots_processed: int, duration_seconds: float) -> None:
    """Record a successful generation call"""
    snapshot_generation_counter.labels(operation=operation, outcome="success").inc()
    snapshots_processed_counter.labels(operation=operation).inc(snapshots_processed)
    snapshot_generation_histogram.observe(duration_seconds)


def record_generation_failure(operation: str, outcome: str) -> None:
    snapshot_generation_counter.labels(operation=operation, outcome=outcome).inc()


def record_import(imported: int, duplicates: int) -> None:
    transactions_imported_counter.labels(outcome="imported").inc(imported)
    transactions_imported_counter.labels(outcome="duplicate").inc(duplicates)
