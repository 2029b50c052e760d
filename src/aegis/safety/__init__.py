"""
Safety and guardrails module for Aegis.

Provides harm-category analysis, prompt injection detection, PII
redaction, groundedness scoring, industry compliance, business logic
checks and safe fallback replies.
"""

from aegis.safety.guardrails import (
    Guardrail,
    PromptInjectionDetector,
    PIIDetector,
    GroundednessScorer,
    IndustryComplianceChecker,
    BusinessLogicChecker,
    COMPLIANCE_RULES,
)
from aegis.safety.harm import HarmCategoryAnalyzer, clamp_severity
from aegis.safety.fallback import (
    FallbackResponseGenerator,
    FALLBACK_TEMPLATES,
    DEFAULT_TEMPLATES,
    TECHNICAL_FAILURE_RESPONSE,
)

__all__ = [
    "Guardrail",
    "PromptInjectionDetector",
    "PIIDetector",
    "GroundednessScorer",
    "IndustryComplianceChecker",
    "BusinessLogicChecker",
    "COMPLIANCE_RULES",
    "HarmCategoryAnalyzer",
    "clamp_severity",
    "FallbackResponseGenerator",
    "FALLBACK_TEMPLATES",
    "DEFAULT_TEMPLATES",
    "TECHNICAL_FAILURE_RESPONSE",
]
