"""
Deterministic guardrails for Aegis.

Provides the rule-based layers of protection:
- Prompt injection / jailbreak detection
- PII detection and redaction
- Groundedness against source documents
- Industry-specific compliance rules
- Business logic (promises and tone)

Rule tables are compiled once at import and never mutated, so detectors
can be shared freely across concurrent validation calls.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Iterable, Mapping, Pattern

from aegis.core.models import (
    GroundednessResult,
    GuardrailCheck,
    GuardrailContext,
    IndustryType,
    PIIDetectionResult,
    PromptInjectionResult,
    Severity,
)

DEFAULT_REDACTION_MARKER = "[REDACTED]"
DEFAULT_GROUNDEDNESS_THRESHOLD = 0.30


class Guardrail(ABC):
    """Base class for guardrails that produce a single GuardrailCheck."""

    check_type: str = "Guardrail"

    def __init__(self, check_type: str | None = None):
        if check_type:
            self.check_type = check_type

    @abstractmethod
    async def check(
        self,
        content: str,
        context: GuardrailContext | None = None,
    ) -> GuardrailCheck:
        """
        Check content against this guardrail.

        Args:
            content: Content to check
            context: Business context of the call

        Returns:
            GuardrailCheck
        """
        pass


class PromptInjectionDetector(Guardrail):
    """
    Detect prompt injection and jailbreak attempts.

    Used on both user input and model output. Confidence grows by 0.3 per
    matched rule and is capped at 1.0.
    """

    check_type = "PromptInjection"

    INJECTION_PATTERNS: tuple[str, ...] = (
        r"ignore\s+(previous|above|all)\s+(instructions?|prompts?|rules?)",
        r"(forget|disregard)\s+(everything|all|instructions?)",
        r"act\s+as\s+(if\s+you\s+are\s+)?(?:a\s+)?(different|new|another)",
        r"pretend\s+(to\s+be|you\s+are)",
        r"(system|admin|root)\s*(prompt|mode|override)",
        r"jailbreak|break\s+out|escape\s+mode",
    )
    CONFIDENCE_PER_MATCH = 0.3

    _COMPILED: tuple[Pattern[str], ...] = tuple(
        re.compile(p, re.IGNORECASE) for p in INJECTION_PATTERNS
    )

    def detect(self, content: str) -> PromptInjectionResult:
        """Test every rule against the lower-cased content."""
        lowered = content.lower()
        detected = [p.pattern for p in self._COMPILED if p.search(lowered)]

        if not detected:
            return PromptInjectionResult(
                is_injection_attempt=False,
                confidence_score=0.0,
                details="No injection patterns detected",
            )

        return PromptInjectionResult(
            is_injection_attempt=True,
            confidence_score=min(self.CONFIDENCE_PER_MATCH * len(detected), 1.0),
            injection_type="Pattern-based detection",
            detected_patterns=detected,
            details=f"Detected patterns: {', '.join(detected)}",
        )

    async def check(
        self,
        content: str,
        context: GuardrailContext | None = None,
    ) -> GuardrailCheck:
        result = self.detect(content)
        return GuardrailCheck(
            check_type=self.check_type,
            passed=not result.is_injection_attempt,
            details=result.details,
            severity=Severity.HIGH if result.is_injection_attempt else Severity.NONE,
            confidence_score=result.confidence_score,
            additional_data={"matched_rules": len(result.detected_patterns)},
        )


class PIIDetector(Guardrail):
    """
    Detect and redact Personally Identifiable Information.

    Rules run in order against the working copy of the text, so a value
    matched by an earlier rule is already redacted when later rules run.
    """

    check_type = "PIIDetection"

    # Order is significant.
    PII_PATTERNS: tuple[tuple[str, str], ...] = (
        ("ssn", r"\b\d{3}-\d{2}-\d{4}\b"),
        ("credit_card", r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"),
        ("email", r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        ("phone", r"(?<!\w)\(\d{3}\)\s?\d{3}-\d{4}\b"),
        ("address", r"\b\d{1,5}\s+\w+\s+(?:Street|St|Avenue|Ave|Road|Rd|Drive|Dr|Lane|Ln|Boulevard|Blvd)\b"),
    )
    CONFIDENCE = 0.90

    _COMPILED: tuple[tuple[str, Pattern[str]], ...] = tuple(
        (name, re.compile(p)) for name, p in PII_PATTERNS
    )

    def __init__(
        self,
        check_type: str | None = None,
        redaction_marker: str = DEFAULT_REDACTION_MARKER,
        include_values_in_details: bool = True,
    ):
        super().__init__(check_type)
        self.redaction_marker = redaction_marker
        self.include_values_in_details = include_values_in_details

    def detect(
        self,
        content: str,
        redaction_marker: str | None = None,
        allowed_entities: Iterable[str] = (),
    ) -> PIIDetectionResult:
        """
        Find PII and return a redacted copy of the content.

        Args:
            content: Text to scan
            redaction_marker: Replacement for every detected literal
            allowed_entities: Literal values that are never redacted
        """
        marker = redaction_marker if redaction_marker is not None else self.redaction_marker
        allowed = set(allowed_entities)
        working = content
        entities: list[str] = []
        entity_types: dict[str, list[str]] = {}

        for name, pattern in self._COMPILED:
            for value in [m.group(0) for m in pattern.finditer(working)]:
                if value in allowed:
                    continue
                entities.append(value)
                entity_types.setdefault(name, []).append(value)
                working = working.replace(value, marker)

        return PIIDetectionResult(
            contains_pii=bool(entities),
            redacted_content=working,
            detected_entities=entities,
            entity_types=entity_types,
        )

    def describe(self, result: PIIDetectionResult) -> str:
        """Human-readable details for a detection result."""
        if not result.contains_pii:
            return "No PII detected"
        if self.include_values_in_details:
            return ", ".join(result.detected_entities)
        return ", ".join(f"{name}: {len(values)}" for name, values in result.entity_types.items())

    async def check(
        self,
        content: str,
        context: GuardrailContext | None = None,
    ) -> GuardrailCheck:
        result = self.detect(content)
        return GuardrailCheck(
            check_type=self.check_type,
            passed=not result.contains_pii,
            details=self.describe(result),
            severity=Severity.MEDIUM if result.contains_pii else Severity.NONE,
            confidence_score=self.CONFIDENCE,
            redacted_content=result.redacted_content,
            additional_data={
                "entity_counts": {k: len(v) for k, v in result.entity_types.items()},
            },
        )


class GroundednessScorer(Guardrail):
    """
    Lexical groundedness of generated text against source documents.

    The score is the share of whitespace-separated, lower-cased candidate
    tokens that appear anywhere in the source documents.
    """

    check_type = "Groundedness"

    def __init__(
        self,
        check_type: str | None = None,
        threshold: float = DEFAULT_GROUNDEDNESS_THRESHOLD,
    ):
        super().__init__(check_type)
        self.threshold = threshold

    def score(self, content: str, source_documents: Iterable[str]) -> GroundednessResult:
        tokens = content.lower().split()
        source_tokens = {t for doc in source_documents for t in doc.lower().split()}

        grounded = sum(1 for t in tokens if t in source_tokens)
        score = grounded / len(tokens) if tokens else 0.0

        return GroundednessResult(
            is_grounded=score >= self.threshold,
            groundedness_score=score,
            details=f"Groundedness score: {score:.2%}",
        )

    async def check(
        self,
        content: str,
        context: GuardrailContext | None = None,
    ) -> GuardrailCheck:
        documents = context.source_documents if context else []
        result = self.score(content, documents)
        return GuardrailCheck(
            check_type=self.check_type,
            passed=result.is_grounded,
            details=result.details,
            severity=Severity.NONE if result.is_grounded else Severity.MEDIUM,
            confidence_score=result.groundedness_score,
        )


COMPLIANCE_RULES: Mapping[IndustryType, tuple[str, ...]] = MappingProxyType({
    IndustryType.REAL_ESTATE: (
        r"\b(discriminat|bias|prefer|avoid)\b.*\b(race|color|religion|sex|familial|national origin|disability)\b",
        r"\b(no\s+)?(kids|children|families|pregnant)\b",
        r"\b(adults?\s+only|mature\s+adults?)\b",
    ),
    IndustryType.FINANCE: (
        r"\b(guaranteed\s+returns?|risk-free|no\s+risk)\b",
        r"\b(insider\s+information|sure\s+thing)\b",
        r"\b(get\s+rich\s+quick|easy\s+money)\b",
    ),
    IndustryType.HEALTHCARE: (
        r"\b(cure|guaranteed\s+treatment|miracle)\b",
        r"\b(diagnos|prescrib|treat)\b.*\b(without\s+doctor|self-medicate)\b",
    ),
})

_COMPILED_COMPLIANCE_RULES: Mapping[IndustryType, tuple[Pattern[str], ...]] = MappingProxyType({
    industry: tuple(re.compile(p, re.IGNORECASE) for p in patterns)
    for industry, patterns in COMPLIANCE_RULES.items()
})


class IndustryComplianceChecker(Guardrail):
    """
    Industry-specific compliance rules.

    Industries without a registered rule set always pass.
    """

    check_type = "IndustryCompliance"
    CONFIDENCE = 0.85

    def violations(self, content: str, industry: IndustryType) -> list[str] | None:
        """Matched rules, or None if the industry has no rule set."""
        patterns = _COMPILED_COMPLIANCE_RULES.get(industry)
        if patterns is None:
            return None
        return [p.pattern for p in patterns if p.search(content)]

    async def check(
        self,
        content: str,
        context: GuardrailContext | None = None,
    ) -> GuardrailCheck:
        industry = context.industry if context else IndustryType.GENERAL
        violations = self.violations(content, industry)

        if violations is None:
            return GuardrailCheck(
                check_type=self.check_type,
                passed=True,
                details="No specific compliance patterns for industry",
                severity=Severity.NONE,
                confidence_score=1.0,
            )

        return GuardrailCheck(
            check_type=self.check_type,
            passed=not violations,
            details=(
                f"Compliance violations: {len(violations)}"
                if violations
                else "No compliance violations detected"
            ),
            severity=Severity.HIGH if violations else Severity.NONE,
            confidence_score=self.CONFIDENCE,
            additional_data={"industry": industry.value, "violation_count": len(violations)},
        )


class BusinessLogicChecker(Guardrail):
    """Unconditional promises and unprofessional tone, for every industry."""

    check_type = "BusinessLogic"
    CONFIDENCE = 0.80

    GUARANTEE_PATTERN = re.compile(
        r"\b(guarantee|promise|ensure|certain)\b.*\b(success|profit|results?)\b",
        re.IGNORECASE,
    )
    UNPROFESSIONAL_PATTERNS: tuple[Pattern[str], ...] = (
        re.compile(r"\b(damn|hell|crap)\b", re.IGNORECASE),
        re.compile(r"!!!"),
    )

    def violations(self, content: str) -> list[str]:
        found = []
        if self.GUARANTEE_PATTERN.search(content):
            found.append("Inappropriate guarantees detected")
        if any(p.search(content) for p in self.UNPROFESSIONAL_PATTERNS):
            found.append("Unprofessional language detected")
        return found

    async def check(
        self,
        content: str,
        context: GuardrailContext | None = None,
    ) -> GuardrailCheck:
        violations = self.violations(content)
        return GuardrailCheck(
            check_type=self.check_type,
            passed=not violations,
            details=", ".join(violations) if violations else "No business logic violations",
            severity=Severity.MEDIUM if violations else Severity.NONE,
            confidence_score=self.CONFIDENCE,
        )
