"""
Guardrail Orchestrator - composes the detectors into decisions.

Provides the public operations:
- validate_output: full pipeline for model-generated text
- validate_input: reduced pipeline for user-submitted text
- is_content_safe: threshold check against the harm classifier
- sanitize: PII redaction and harmful-content removal
- log_violation / generate_safe_fallback_response

Every validation returns a GuardrailResult. Errors escaping the detectors
are converted into a blocking, critical result.
"""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable

import structlog

from aegis.core.config import Settings, get_settings
from aegis.core.models import (
    DEFAULT_SAFETY_THRESHOLD,
    SAFETY_LEVEL_THRESHOLDS,
    GuardrailAction,
    GuardrailCheck,
    GuardrailContext,
    GuardrailResult,
    GuardrailViolation,
    SafetyLevel,
    SanitizationOptions,
    Severity,
)
from aegis.observability.audit import AuditRecorder, build_audit, compute_content_hash
from aegis.observability.events import get_event_emitter
from aegis.providers.azure_content_safety import AzureContentSafetyClient
from aegis.providers.base import ContentClassifier
from aegis.safety.fallback import FallbackResponseGenerator, TECHNICAL_FAILURE_RESPONSE
from aegis.safety.guardrails import (
    BusinessLogicChecker,
    GroundednessScorer,
    IndustryComplianceChecker,
    PIIDetector,
    PromptInjectionDetector,
)
from aegis.safety.harm import HarmCategoryAnalyzer
from aegis.utils.metrics import metrics as global_metrics
from aegis.utils.retry import RetryConfig

logger = structlog.get_logger()

HARMFUL_CONTENT_PLACEHOLDER = "[Content removed for safety]"
HARM_CHECK_CONFIDENCE = 0.95


async def gather_checks(checks: list[Awaitable[GuardrailCheck]]) -> list[GuardrailCheck]:
    """
    Run checks concurrently, preserving order.

    If any check raises, the remaining checks are cancelled and awaited
    before the error propagates.
    """
    tasks = [asyncio.ensure_future(c) for c in checks]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class GuardrailOrchestrator:
    """
    Content-safety and policy validation pipeline.

    Detectors are independent and run concurrently within one call; rule
    tables are shared read-only, so one orchestrator can serve any number
    of concurrent validations.
    """

    def __init__(
        self,
        classifier: ContentClassifier | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        audit_recorder: AuditRecorder | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            classifier: Harm classifier (Azure Content Safety from settings if omitted)
            settings: Application settings (cached settings if omitted)
            rng: Random source for fallback selection
            audit_recorder: Audit/telemetry recorder
        """
        self.settings = settings or get_settings()
        cs = self.settings.content_safety
        gs = self.settings.guardrails

        self.classifier = classifier or AzureContentSafetyClient.from_settings(cs)
        self.harm_analyzer = HarmCategoryAnalyzer(
            self.classifier,
            timeout=cs.timeout_seconds,
            retry_config=RetryConfig(max_retries=cs.max_retries, base_delay=cs.retry_base_delay),
        )
        self.injection_detector = PromptInjectionDetector()
        self.input_injection_detector = PromptInjectionDetector(check_type="InputInjection")
        self.pii_detector = PIIDetector(
            redaction_marker=gs.redaction_marker,
            include_values_in_details=gs.pii_details_include_values,
        )
        self.groundedness_scorer = GroundednessScorer(threshold=gs.groundedness_threshold)
        self.compliance_checker = IndustryComplianceChecker()
        self.business_logic_checker = BusinessLogicChecker()
        self.fallback_generator = FallbackResponseGenerator(rng)
        self.audit = audit_recorder or AuditRecorder(
            emitter=get_event_emitter(),
            metrics=global_metrics,
            enabled=gs.audit_enabled,
            telemetry_enabled=gs.telemetry_enabled,
            buffer_size=gs.audit_buffer_size,
        )

        logger.info(
            "Guardrail orchestrator initialized",
            classifier=self.classifier.name,
        )

    async def __aenter__(self) -> "GuardrailOrchestrator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Flush pending telemetry and release classifier resources."""
        await self.audit.emitter.drain()
        await self.classifier.close()

    async def _harm_check(
        self,
        content: str,
        check_type: str,
        timeout: float | None,
    ) -> GuardrailCheck:
        analysis = await self.harm_analyzer.analyze(content, timeout=timeout)
        return GuardrailCheck(
            check_type=check_type,
            passed=not analysis.has_violations,
            details=analysis.details,
            severity=analysis.max_severity,
            confidence_score=HARM_CHECK_CONFIDENCE,
            additional_data={
                "categories": {c.category: c.score for c in analysis.detected_categories},
            },
        )

    async def _run_output_checks(
        self,
        content: str,
        context: GuardrailContext,
        timeout: float | None,
    ) -> list[GuardrailCheck]:
        checks = [
            self._harm_check(content, "HarmCategories", timeout),
            self.injection_detector.check(content, context),
            self.pii_detector.check(content, context),
        ]
        if context.has_source_documents:
            checks.append(self.groundedness_scorer.check(content, context))
        checks.append(self.compliance_checker.check(content, context))
        checks.append(self.business_logic_checker.check(content, context))

        return await gather_checks(checks)

    async def _run_input_checks(
        self,
        content: str,
        context: GuardrailContext,
        timeout: float | None,
    ) -> list[GuardrailCheck]:
        return await gather_checks([
            self.input_injection_detector.check(content, context),
            self._harm_check(content, "InputHarmCategories", timeout),
        ])

    async def validate_output(
        self,
        content: str,
        context: GuardrailContext | None = None,
        timeout: float | None = None,
    ) -> GuardrailResult:
        """
        Validate model-generated content.

        Args:
            content: Generated text
            context: Business context (general industry if omitted)
            timeout: Classifier timeout override in seconds

        Returns:
            GuardrailResult; processed_content is always the PII-redacted text
        """
        return await self._validate(content, context, timeout, "output")

    async def validate_input(
        self,
        content: str,
        context: GuardrailContext | None = None,
        timeout: float | None = None,
    ) -> GuardrailResult:
        """
        Validate user-submitted content before it reaches a model.

        Only prompt injection and harm categories are checked.
        """
        return await self._validate(content, context, timeout, "input")

    async def _validate(
        self,
        content: str,
        context: GuardrailContext | None,
        timeout: float | None,
        validation_type: str,
    ) -> GuardrailResult:
        content = content or ""
        context = context or GuardrailContext()
        validation_id = str(uuid.uuid4())
        start = time.perf_counter()
        log = logger.bind(
            validation_id=validation_id,
            validation_type=validation_type,
            industry=context.industry.value,
        )
        log.info("Starting guardrail validation")

        try:
            if validation_type == "output":
                checks = await self._run_output_checks(content, context, timeout)
                processed = next(
                    c.redacted_content for c in checks
                    if c.check_type == self.pii_detector.check_type
                )
            else:
                checks = await self._run_input_checks(content, context, timeout)
                processed = None

            result = GuardrailResult.from_checks(
                checks,
                validation_id=validation_id,
                processed_content=processed,
                metadata=self._metadata(context, validation_type),
            )
            fallback = None
            if result.recommended_action == GuardrailAction.BLOCK:
                fallback = await self.generate_safe_fallback_response(result, context)

            result = result.model_copy(update={
                "fallback_response": fallback,
                "processing_time_ms": (time.perf_counter() - start) * 1000,
            })

        except Exception as e:
            log.error(
                "Guardrail validation failed",
                content_hash=compute_content_hash(content),
                error=str(e),
                error_type=type(e).__name__,
            )
            result = self._failure_result(
                validation_id,
                (time.perf_counter() - start) * 1000,
                e,
            )

        await self._record(content, result, context)

        log.info(
            "Guardrail validation completed",
            is_allowed=result.is_allowed,
            action=result.recommended_action.value,
            max_severity=result.max_severity.name,
            processing_time_ms=round(result.processing_time_ms, 2),
        )
        return result

    def _metadata(self, context: GuardrailContext, validation_type: str) -> dict[str, Any]:
        return {
            "industry": context.industry.value,
            "content_type": context.content_type.value,
            "has_source_documents": context.has_source_documents,
            "validation_timestamp": datetime.now(timezone.utc).isoformat(),
            "validation_type": validation_type,
        }

    @staticmethod
    def _failure_result(
        validation_id: str,
        processing_time_ms: float,
        error: Exception,
    ) -> GuardrailResult:
        """Fail-closed result for an unexpected pipeline error."""
        check = GuardrailCheck(
            check_type="Pipeline",
            passed=False,
            details=f"Guardrail validation failed ({type(error).__name__})",
            severity=Severity.CRITICAL,
            confidence_score=1.0,
        )
        return GuardrailResult.from_checks(
            [check],
            validation_id=validation_id,
            processing_time_ms=processing_time_ms,
            fallback_response=TECHNICAL_FAILURE_RESPONSE,
        )

    async def _record(
        self,
        content: str,
        result: GuardrailResult,
        context: GuardrailContext,
    ) -> None:
        try:
            await self.audit.record(build_audit(content, result, context))
            await self.audit.track_validation(result, context)
        except Exception as e:
            logger.error("Failed to record guardrail audit", error=str(e))

    async def is_content_safe(
        self,
        content: str,
        level: SafetyLevel = SafetyLevel.MEDIUM,
        timeout: float | None = None,
    ) -> bool:
        """
        Check every classifier category against the level's threshold.

        LOW is the most permissive level (threshold 6) and STRICT the
        tightest (threshold 0). Returns False if the classifier fails.
        """
        threshold = SAFETY_LEVEL_THRESHOLDS.get(level, DEFAULT_SAFETY_THRESHOLD)
        try:
            scores = await self.harm_analyzer.classify(content or "", timeout=timeout)
        except Exception as e:
            logger.error(
                "Content safety check failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        return all(s.severity <= threshold for s in scores)

    async def sanitize(
        self,
        content: str,
        options: SanitizationOptions | None = None,
    ) -> str:
        """
        Redact PII and/or remove harmful content.

        Harmful content is replaced by a placeholder when preserving
        structure, otherwise by an empty string.
        """
        options = options or SanitizationOptions()
        sanitized = content or ""

        if options.redact_pii:
            sanitized = self.pii_detector.detect(
                sanitized,
                redaction_marker=options.redaction_placeholder,
                allowed_entities=options.allowed_entities,
            ).redacted_content

        if options.remove_harmful_content:
            analysis = await self.harm_analyzer.analyze(sanitized)
            if analysis.has_violations:
                sanitized = HARMFUL_CONTENT_PLACEHOLDER if options.preserve_structure else ""

        return sanitized

    async def log_violation(self, violation: GuardrailViolation) -> None:
        """Emit telemetry for a violation. Never raises."""
        await self.audit.log_violation(violation)

    async def generate_safe_fallback_response(
        self,
        result: GuardrailResult,
        context: GuardrailContext,
    ) -> str:
        """Industry-appropriate reply for blocked content."""
        return await self.fallback_generator.generate(result, context)
