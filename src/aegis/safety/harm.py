"""
Harm-category analysis backed by an external classifier.

The analyzer fails closed: when the classifier cannot produce an answer
the content is reported as a critical violation.
"""

from __future__ import annotations

import asyncio

import structlog

from aegis.core.models import HarmAnalysisResult, HarmCategory, Severity
from aegis.providers.base import CategorySeverity, ContentClassifier
from aegis.utils.retry import RetryConfig, retry_async

logger = structlog.get_logger()

FAILURE_DETAILS = "Content safety analysis failed"


def clamp_severity(raw: int | float | None) -> Severity:
    """Clamp a classifier severity into the shared 0-4 scale."""
    value = int(raw or 0)
    return Severity(max(0, min(value, int(Severity.CRITICAL))))


class HarmCategoryAnalyzer:
    """
    Map classifier scores into the shared severity scale.

    Each classifier call is bounded by a timeout and retried only for
    retryable errors.
    """

    def __init__(
        self,
        classifier: ContentClassifier,
        timeout: float = 10.0,
        retry_config: RetryConfig | None = None,
    ):
        self.classifier = classifier
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

    async def classify(self, text: str, timeout: float | None = None) -> list[CategorySeverity]:
        """
        Call the classifier with bounded retries.

        The timeout is one deadline for the whole call, retries and
        backoff included.

        Raises:
            Any classifier or timeout error once retries are exhausted
        """
        return await asyncio.wait_for(
            retry_async(self.classifier.analyze_text, text, config=self.retry_config),
            timeout=timeout if timeout is not None else self.timeout,
        )

    async def analyze(self, text: str, timeout: float | None = None) -> HarmAnalysisResult:
        """Analyze text, failing closed on any classifier error."""
        try:
            scores = await self.classify(text, timeout=timeout)
        except Exception as e:
            logger.error(
                "Content safety analysis failed",
                classifier=self.classifier.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return HarmAnalysisResult(
                has_violations=True,
                max_severity=Severity.CRITICAL,
                details=f"{FAILURE_DETAILS} ({type(e).__name__})",
            )

        detected = [
            HarmCategory(
                category=s.category,
                severity=clamp_severity(s.severity),
                score=float(s.severity),
            )
            for s in scores
            if s.severity > 0
        ]

        return HarmAnalysisResult(
            has_violations=bool(detected),
            max_severity=max((c.severity for c in detected), default=Severity.NONE),
            details=", ".join(f"{c.category}: {c.severity.name}" for c in detected),
            detected_categories=detected,
        )
