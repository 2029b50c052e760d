"""
Aegis - Content Safety and Policy Validation for AI Applications

Validates AI-generated responses and user prompts against harm categories,
prompt injection, PII, groundedness, industry compliance and business
rules, and turns the findings into a single severity and action.
"""

__version__ = "1.0.0"
__author__ = "Aegis Team"

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
