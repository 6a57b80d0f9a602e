"""Prometheus metrics for the settings store.

Recording helpers never raise; a metrics failure must not break a settings
read or write.
"""

import logging

from prometheus_client import Counter

logger = logging.getLogger(__name__)

SETTINGS_CACHE_LOOKUPS_TOTAL = Counter(
    "settings_cache_lookups_total",
    "Setting reads by cache outcome",
    ["result"],
)
SETTINGS_OPERATIONS_TOTAL = Counter(
    "settings_operations_total",
    "Total setting operations",
    ["operation", "status"],
)


def record_cache_lookup(result: str) -> None:
    """Record a cache lookup outcome (hit, miss, error or bypass)."""
    try:
        SETTINGS_CACHE_LOOKUPS_TOTAL.labels(result=result).inc()
    except Exception as e:
        logger.error("Error recording cache lookup metric: %s", e)


def record_operation(operation: str, status: str) -> None:
    """Record a setting operation metric."""
    try:
        SETTINGS_OPERATIONS_TOTAL.labels(operation=operation, status=status).inc()
    except Exception as e:
        logger.error("Error recording operation metric: %s", e)
