"""
Metrics collection for guardrail validations.

Aggregates decisions and timings in process for monitoring.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any


@dataclass
class ValidationMetrics:
    """Metrics for a single validation call."""

    timestamp: datetime
    validation_id: str
    action: str
    severity_level: int
    processing_time_ms: float
    check_count: int
    failed_checks: int
    industry: str | None = None


class GuardrailMetrics:
    """
    Thread-safe metrics collector for guardrail validations.

    Severity counts are keyed by the stable severity ordinal (0-4).
    """

    def __init__(self, max_history: int = 10000):
        """
        Initialize metrics collector.

        Args:
            max_history: Maximum number of validations to keep in history
        """
        self._lock = Lock()
        self._max_history = max_history
        self._history: list[ValidationMetrics] = []
        self._actions: dict[str, int] = defaultdict(int)
        self._severities: dict[int, int] = defaultdict(int)
        self._failed_check_types: dict[str, int] = defaultdict(int)
        self._violations: dict[str, int] = defaultdict(int)
        self._total_processing_ms = 0.0
        self._start_time = datetime.now(timezone.utc)

    def record_validation(
        self,
        validation_id: str,
        action: str,
        severity_level: int,
        processing_time_ms: float,
        check_count: int,
        failed_check_types: list[str],
        industry: str | None = None,
    ) -> None:
        """
        Record a completed validation.

        Args:
            validation_id: Validation identifier
            action: Recommended action value
            severity_level: Severity ordinal (0-4)
            processing_time_ms: Wall time of the validation
            check_count: Number of checks run
            failed_check_types: Check types that did not pass
            industry: Industry of the context
        """
        with self._lock:
            self._add(ValidationMetrics(
                timestamp=datetime.now(timezone.utc),
                validation_id=validation_id,
                action=action,
                severity_level=severity_level,
                processing_time_ms=processing_time_ms,
                check_count=check_count,
                failed_checks=len(failed_check_types),
                industry=industry,
            ))
            self._actions[action] += 1
            self._severities[severity_level] += 1
            self._total_processing_ms += processing_time_ms
            for check_type in failed_check_types:
                self._failed_check_types[check_type] += 1

    def record_violation(self, violation_type: str) -> None:
        """Record a reported violation."""
        with self._lock:
            self._violations[violation_type] += 1

    def _add(self, item: ValidationMetrics) -> None:
        """Add to history, maintaining max size."""
        self._history.append(item)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

    def get_summary(self) -> dict[str, Any]:
        """
        Get metrics summary.

        Returns:
            Dictionary with aggregated metrics
        """
        with self._lock:
            total = sum(self._actions.values())
            allowed = self._actions.get("allow", 0) + self._actions.get("flag", 0)
            uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()

            return {
                "uptime_seconds": uptime,
                "total_validations": total,
                "allowed": allowed,
                "blocked": self._actions.get("block", 0),
                "allow_rate": allowed / total if total > 0 else 0.0,
                "avg_processing_time_ms": self._total_processing_ms / total if total > 0 else 0.0,
                "actions": dict(self._actions),
                "severities": dict(self._severities),
                "failed_checks": dict(self._failed_check_types),
                "violations": dict(self._violations),
            }

    def get_recent(self, limit: int = 100) -> list[dict[str, Any]]:
        """Recent validation history, oldest first."""
        with self._lock:
            return [
                {
                    "timestamp": m.timestamp.isoformat(),
                    "validation_id": m.validation_id,
                    "action": m.action,
                    "severity_level": m.severity_level,
                    "processing_time_ms": m.processing_time_ms,
                    "check_count": m.check_count,
                    "failed_checks": m.failed_checks,
                    "industry": m.industry,
                }
                for m in self._history[-limit:]
            ]

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._history.clear()
            self._actions.clear()
            self._severities.clear()
            self._failed_check_types.clear()
            self._violations.clear()
            self._total_processing_ms = 0.0
            self._start_time = datetime.now(timezone.utc)


# Global metrics instance
metrics = GuardrailMetrics()
