"""Observability utilities for the idempotency MongoDB adapter.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for storage operations and readiness
- Structured logging with contextual information
"""

from idempotent_mongo_adapter.observability.logging import configure_logging, get_logger
from idempotent_mongo_adapter.observability.metrics import (
    record_operation,
    record_operation_duration,
    set_adapter_ready,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_operation",
    "record_operation_duration",
    "set_adapter_ready",
]
