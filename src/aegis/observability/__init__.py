"""
Observability module for Aegis.

Provides audit records and telemetry events for guardrail decisions.
"""

from aegis.observability.audit import (
    AuditRecorder,
    audit_record,
    build_audit,
    compute_content_hash,
)
from aegis.observability.events import (
    EventType,
    Event,
    EventEmitter,
    WebhookTarget,
    get_event_emitter,
)

__all__ = [
    "AuditRecorder",
    "audit_record",
    "build_audit",
    "compute_content_hash",
    "EventType",
    "Event",
    "EventEmitter",
    "WebhookTarget",
    "get_event_emitter",
]
