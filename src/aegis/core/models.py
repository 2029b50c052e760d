"""
Core data models for the Aegis guardrail pipeline.

Defines the severity/action vocabulary shared by every detector and the
data contracts (context, checks, results, audit records) handed to callers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Severity(IntEnum):
    """Ordered risk level. Ordinals are stable and used for metrics."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class GuardrailAction(str, Enum):
    """Action recommended for a piece of content."""

    ALLOW = "allow"  # Deliver as-is
    FLAG = "flag"  # Deliver but mark for review
    REDACT = "redact"  # Deliver the processed (redacted) content
    BLOCK = "block"  # Replace with the fallback response
    ESCALATE = "escalate"  # Reserved for human review workflows


ALLOWED_ACTIONS = frozenset({GuardrailAction.ALLOW, GuardrailAction.FLAG})

# Every severity maps to exactly one action.
SEVERITY_ACTIONS: dict[Severity, GuardrailAction] = {
    Severity.CRITICAL: GuardrailAction.BLOCK,
    Severity.HIGH: GuardrailAction.BLOCK,
    Severity.MEDIUM: GuardrailAction.REDACT,
    Severity.LOW: GuardrailAction.FLAG,
    Severity.NONE: GuardrailAction.ALLOW,
}


class IndustryType(str, Enum):
    """Industries with (potentially) dedicated compliance rules."""

    GENERAL = "general"
    REAL_ESTATE = "real_estate"
    HEALTHCARE = "healthcare"
    FINANCE = "finance"
    LEGAL = "legal"
    EDUCATION = "education"
    GOVERNMENT = "government"


class ContentType(str, Enum):
    """Kinds of content passed through the guardrails."""

    TEXT = "text"
    EMAIL = "email"
    DOCUMENT = "document"
    CODE = "code"
    QUERY = "query"
    RESPONSE = "response"


class SafetyLevel(str, Enum):
    """
    Coarse strictness level for is_content_safe.

    Note the naming is inverted relative to the numeric threshold: LOW is
    the most permissive level (highest threshold), STRICT the tightest.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    STRICT = "strict"


SAFETY_LEVEL_THRESHOLDS: dict[SafetyLevel, int] = {
    SafetyLevel.LOW: 6,
    SafetyLevel.MEDIUM: 4,
    SafetyLevel.HIGH: 2,
    SafetyLevel.STRICT: 0,
}
DEFAULT_SAFETY_THRESHOLD = 4


def max_severity(severities: Iterable[Severity]) -> Severity:
    """Highest severity in the iterable, NONE when empty."""
    return max(severities, default=Severity.NONE)


def resolve_action(severity: Severity) -> GuardrailAction:
    """Map an aggregate severity to the recommended action."""
    return SEVERITY_ACTIONS[Severity(severity)]


def is_allowed_action(action: GuardrailAction) -> bool:
    """Whether content under this action may be delivered to the user."""
    return action in ALLOWED_ACTIONS


class GuardrailContext(BaseModel):
    """Business context for a single validation call."""

    model_config = ConfigDict(frozen=True)

    industry: IndustryType = IndustryType.GENERAL
    content_type: ContentType = ContentType.TEXT
    user_id: str = ""
    session_id: str = ""
    interaction_id: str = ""
    has_source_documents: bool = False
    source_documents: list[str] = Field(default_factory=list)
    additional_context: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class GuardrailCheck(BaseModel):
    """Outcome of one detector invocation."""

    model_config = ConfigDict(frozen=True)

    check_type: str
    passed: bool
    details: str = ""
    severity: Severity = Severity.NONE
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    redacted_content: str | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)


class GuardrailResult(BaseModel):
    """Aggregated decision for one validation call."""

    model_config = ConfigDict(frozen=True)

    is_allowed: bool
    recommended_action: GuardrailAction
    validation_results: list[GuardrailCheck] = Field(default_factory=list)
    max_severity: Severity = Severity.NONE
    processing_time_ms: float = 0.0
    validation_id: str = Field(default_factory=_new_id)
    processed_content: str | None = None
    fallback_response: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_allowed(self) -> "GuardrailResult":
        if self.is_allowed != is_allowed_action(self.recommended_action):
            raise ValueError(
                f"is_allowed={self.is_allowed} is inconsistent with "
                f"action {self.recommended_action.value}"
            )
        return self

    @classmethod
    def from_checks(
        cls,
        checks: list[GuardrailCheck],
        **kwargs: Any,
    ) -> "GuardrailResult":
        """Build a result whose severity and action derive from the checks."""
        severity = max_severity(c.severity for c in checks)
        action = resolve_action(severity)
        return cls(
            is_allowed=is_allowed_action(action),
            recommended_action=action,
            validation_results=checks,
            max_severity=severity,
            **kwargs,
        )

    @property
    def failed_checks(self) -> list[GuardrailCheck]:
        """Checks that did not pass."""
        return [c for c in self.validation_results if not c.passed]

    def summary(self) -> dict[str, Any]:
        """Compact, content-free summary used by audit records."""
        return {
            "is_allowed": self.is_allowed,
            "recommended_action": self.recommended_action.value,
            "max_severity": self.max_severity.name,
            "check_count": len(self.validation_results),
            "failed_checks": len(self.failed_checks),
        }


class GuardrailAudit(BaseModel):
    """Privacy-scrubbed audit record. Never holds the raw content."""

    model_config = ConfigDict(frozen=True)

    audit_id: str = Field(default_factory=_new_id)
    user_id: str = ""
    session_id: str = ""
    content_hash: str
    validation_result: GuardrailResult
    context: GuardrailContext
    timestamp: datetime = Field(default_factory=_utcnow)
    processing_time_ms: float = 0.0


class GuardrailViolation(BaseModel):
    """A violation reported for audit and monitoring."""

    model_config = ConfigDict(frozen=True)

    violation_id: str = Field(default_factory=_new_id)
    user_id: str = ""
    session_id: str = ""
    content_hash: str = ""
    violation_type: str
    severity: Severity
    description: str = ""
    action_taken: GuardrailAction
    timestamp: datetime = Field(default_factory=_utcnow)
    context: dict[str, Any] = Field(default_factory=dict)


class SanitizationOptions(BaseModel):
    """Options for sanitize()."""

    model_config = ConfigDict(frozen=True)

    redact_pii: bool = True
    remove_harmful_content: bool = True
    preserve_structure: bool = True
    redaction_placeholder: str = "[REDACTED]"
    allowed_entities: list[str] = Field(default_factory=list)


class HarmCategory(BaseModel):
    """One harm category reported by the classifier."""

    model_config = ConfigDict(frozen=True)

    category: str
    severity: Severity
    score: float = 0.0


class HarmAnalysisResult(BaseModel):
    """Result of harm-category analysis."""

    model_config = ConfigDict(frozen=True)

    has_violations: bool
    max_severity: Severity = Severity.NONE
    details: str = ""
    detected_categories: list[HarmCategory] = Field(default_factory=list)


class PIIDetectionResult(BaseModel):
    """Result of PII detection and redaction."""

    model_config = ConfigDict(frozen=True)

    contains_pii: bool
    redacted_content: str
    detected_entities: list[str] = Field(default_factory=list)
    entity_types: dict[str, list[str]] = Field(default_factory=dict)


class PromptInjectionResult(BaseModel):
    """Result of prompt injection detection."""

    model_config = ConfigDict(frozen=True)

    is_injection_attempt: bool
    confidence_score: float = 0.0
    injection_type: str = "None"
    detected_patterns: list[str] = Field(default_factory=list)
    details: str = ""


class GroundednessResult(BaseModel):
    """Result of the lexical groundedness check."""

    model_config = ConfigDict(frozen=True)

    is_grounded: bool
    groundedness_score: float = 0.0
    ungrounded_claims: list[str] = Field(default_factory=list)
    details: str = ""
