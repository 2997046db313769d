"""Prometheus metrics for the idempotency MongoDB adapter.

Metrics include:

- Operation counters by operation and result (ok, not_found, duplicate, error)
- Operation latency histogram
- Adapter readiness gauge, one series per store collection

Examples:
    Recording a duplicate create::

        from idempotent_mongo_adapter.observability.metrics import record_operation

        record_operation(operation="create", result="duplicate")

    Recording latency::

        record_operation_duration(operation="find", duration_seconds=0.004)
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: operation (find, create, update, delete), result
operations_total = Counter(
    "idempotency_mongo_operations_total",
    "Total number of storage operations performed by the MongoDB adapter",
    ["operation", "result"],
)

operation_duration_seconds = Histogram(
    "idempotency_mongo_operation_duration_seconds",
    "Storage operation latency in seconds",
    ["operation"],
    buckets=[0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Labels: collection (store collection name, e.g. idempotencyStore)
adapter_ready = Gauge(
    "idempotency_mongo_adapter_ready",
    "Whether the MongoDB adapter for a store collection is READY",
    ["collection"],
)


def record_operation(operation: str, result: str) -> None:
    """Record a completed storage operation.

    Args:
        operation: The operation name (find, create, update, delete)
        result: The outcome (ok, hit, miss, not_found, duplicate, error)

    Examples:
        >>> record_operation("find", "miss")
    """
    operations_total.labels(operation=operation, result=result).inc()


def record_operation_duration(operation: str, duration_seconds: float) -> None:
    """Record how long a storage operation took."""
    operation_duration_seconds.labels(operation=operation).observe(duration_seconds)


def set_adapter_ready(collection: str, ready: bool) -> None:
    """Set the readiness gauge for one store collection.

    Adapters with different collection prefixes report separately, so
    stopping one tenant does not hide another that is still READY.

    Examples:
        >>> set_adapter_ready("idempotencyStore", True)
    """
    adapter_ready.labels(collection=collection).set(1 if ready else 0)
