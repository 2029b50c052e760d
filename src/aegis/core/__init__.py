"""Core guardrail components."""

from aegis.core.orchestrator import GuardrailOrchestrator
from aegis.core.models import (
    Severity,
    GuardrailAction,
    IndustryType,
    ContentType,
    SafetyLevel,
    GuardrailContext,
    GuardrailCheck,
    GuardrailResult,
    GuardrailAudit,
    GuardrailViolation,
    SanitizationOptions,
)

__all__ = [
    "GuardrailOrchestrator",
    "Severity",
    "GuardrailAction",
    "IndustryType",
    "ContentType",
    "SafetyLevel",
    "GuardrailContext",
    "GuardrailCheck",
    "GuardrailResult",
    "GuardrailAudit",
    "GuardrailViolation",
    "SanitizationOptions",
]
