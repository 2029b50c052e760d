"""Utility modules for Aegis."""

from aegis.utils.logging import setup_logging
from aegis.utils.metrics import metrics, GuardrailMetrics
from aegis.utils.retry import with_retry, retry_async, RetryConfig

__all__ = [
    "setup_logging",
    "metrics",
    "GuardrailMetrics",
    "with_retry",
    "retry_async",
    "RetryConfig",
]
