"""
Compliance audit records for guardrail decisions.

Audit records carry a one-way hash of the content, never the content
itself. Recording and telemetry are best-effort: failures are logged and
never affect the validation result.

Designed to feed an append-only compliance store; persistence itself is
left to the caller (see AuditRecorder.query for the in-memory buffer).
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

import structlog

from aegis.core.models import (
    GuardrailAudit,
    GuardrailContext,
    GuardrailResult,
    GuardrailViolation,
)
from aegis.observability.events import EventEmitter, EventType
from aegis.utils.metrics import GuardrailMetrics

logger = structlog.get_logger()

CONTENT_HASH_LENGTH = 16


def compute_content_hash(content: str) -> str:
    """Fixed-length SHA-256 prefix of the content, safe to log."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:CONTENT_HASH_LENGTH]


def build_audit(
    content: str,
    result: GuardrailResult,
    context: GuardrailContext,
) -> GuardrailAudit:
    """Build the audit record for one validation call."""
    return GuardrailAudit(
        user_id=context.user_id,
        session_id=context.session_id,
        content_hash=compute_content_hash(content),
        validation_result=result,
        context=context,
        processing_time_ms=result.processing_time_ms,
    )


def audit_record(audit: GuardrailAudit) -> dict[str, Any]:
    """Compact, serializable form of an audit."""
    return {
        "audit_id": audit.audit_id,
        "validation_id": audit.validation_result.validation_id,
        "user_id": audit.user_id,
        "session_id": audit.session_id,
        "content_hash": audit.content_hash,
        "timestamp": audit.timestamp.isoformat(),
        "validation_result": audit.validation_result.summary(),
        "processing_time_ms": audit.processing_time_ms,
    }


class AuditRecorder:
    """
    Emit audit records, validation telemetry and violations.

    Features:
    - Structured audit log line per validation
    - Bounded in-memory buffer of recent audits
    - Telemetry events with stable severity ordinals
    - Aggregated metrics
    """

    def __init__(
        self,
        emitter: EventEmitter | None = None,
        metrics: GuardrailMetrics | None = None,
        enabled: bool = True,
        telemetry_enabled: bool = True,
        buffer_size: int = 1000,
    ):
        self.emitter = emitter or EventEmitter()
        self.metrics = metrics or GuardrailMetrics()
        self._enabled = enabled
        self._telemetry_enabled = telemetry_enabled
        self._buffer: list[GuardrailAudit] = []
        self._buffer_size = buffer_size

    async def record(self, audit: GuardrailAudit) -> None:
        """Log and buffer an audit record."""
        if not self._enabled:
            return
        try:
            logger.info(
                "guardrail_audit",
                validation_id=audit.validation_result.validation_id,
                audit_data=json.dumps(audit_record(audit), sort_keys=True),
            )
            self._buffer.append(audit)
            if len(self._buffer) > self._buffer_size:
                self._buffer = self._buffer[-self._buffer_size:]
        except Exception as e:
            logger.error("Failed to log guardrail audit", error=str(e))

    async def track_validation(self, result: GuardrailResult, context: GuardrailContext) -> None:
        """Emit validation telemetry and update metrics."""
        if not self._telemetry_enabled:
            return
        try:
            failed = [c.check_type for c in result.failed_checks]
            severity_level = int(result.max_severity)

            self.metrics.record_validation(
                validation_id=result.validation_id,
                action=result.recommended_action.value,
                severity_level=severity_level,
                processing_time_ms=result.processing_time_ms,
                check_count=len(result.validation_results),
                failed_check_types=failed,
                industry=context.industry.value,
            )

            await self.emitter.emit(
                EventType.GUARDRAIL_VALIDATION,
                properties={
                    "validation_id": result.validation_id,
                    "is_allowed": str(result.is_allowed),
                    "recommended_action": result.recommended_action.value,
                    "max_severity": result.max_severity.name,
                    "industry": context.industry.value,
                    "content_type": context.content_type.value,
                },
                metrics={
                    "processing_time_ms": result.processing_time_ms,
                    "check_count": float(len(result.validation_results)),
                    "failed_checks": float(len(failed)),
                    "severity_level": float(severity_level),
                },
                validation_id=result.validation_id,
            )
        except Exception as e:
            logger.error("Failed to log guardrail telemetry", error=str(e))

    async def log_violation(self, violation: GuardrailViolation) -> None:
        """Emit telemetry for a reported violation."""
        try:
            logger.warning(
                "Guardrail violation detected",
                violation_id=violation.violation_id,
                violation_type=violation.violation_type,
                severity=violation.severity.name,
                user_id=violation.user_id,
            )
            self.metrics.record_violation(violation.violation_type)
            await self.emitter.emit(
                EventType.GUARDRAIL_VIOLATION,
                properties={
                    "violation_id": violation.violation_id,
                    "violation_type": violation.violation_type,
                    "severity": violation.severity.name,
                    "user_id": violation.user_id,
                    "action_taken": violation.action_taken.value,
                },
                metrics={"severity_level": float(int(violation.severity))},
            )
        except Exception as e:
            logger.error("Failed to log guardrail violation", error=str(e))

    def query(
        self,
        user_id: str | None = None,
        session_id: str | None = None,
        limit: int = 100,
    ) -> list[GuardrailAudit]:
        """Most recent buffered audits, newest first."""
        entries = []
        for audit in reversed(self._buffer):
            if user_id is not None and audit.user_id != user_id:
                continue
            if session_id is not None and audit.session_id != session_id:
                continue
            entries.append(audit)
            if len(entries) >= limit:
                break
        return entries
