"""
Base interface for external content-safety classifiers.

All classifier implementations must inherit from ContentClassifier.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping


class ClassifierError(Exception):
    """Base exception for classifier errors."""

    def __init__(
        self,
        message: str,
        classifier: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.classifier = classifier
        self.status_code = status_code
        self.retryable = retryable


class ClassifierUnavailableError(ClassifierError):
    """Raised when the classifier is not configured or cannot be reached."""

    def __init__(self, message: str, classifier: str | None = None, retryable: bool = False):
        super().__init__(message, classifier, status_code=None, retryable=retryable)


class RateLimitError(ClassifierError):
    """Raised when the classifier rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        classifier: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, classifier, status_code=429, retryable=True)
        self.retry_after = retry_after


class AuthenticationError(ClassifierError):
    """Raised when the classifier rejects our credentials."""

    def __init__(self, message: str, classifier: str | None = None, status_code: int = 401):
        super().__init__(message, classifier, status_code=status_code, retryable=False)


@dataclass(frozen=True)
class CategorySeverity:
    """Raw severity reported by a classifier for one harm category."""

    category: str
    severity: int


class ContentClassifier(ABC):
    """
    Abstract base class for harm-category classifiers.

    Implementations return one entry per analysed category. Severities are
    on the classifier's own scale (e.g. 0/2/4/6); callers clamp as needed.
    """

    name: str = "classifier"

    @abstractmethod
    async def analyze_text(self, text: str) -> list[CategorySeverity]:
        """
        Classify text.

        Args:
            text: The text to classify

        Returns:
            List of per-category severities

        Raises:
            ClassifierError: If the classification could not be obtained
        """
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None


class StaticClassifier(ContentClassifier):
    """
    In-process classifier returning fixed scores.

    Used for offline runs and tests. Returns the configured scores for every
    text, or raises the configured error.
    """

    name = "static"

    def __init__(
        self,
        scores: Mapping[str, int] | None = None,
        error: Exception | None = None,
    ):
        self.scores = dict(scores) if scores is not None else {
            "Hate": 0,
            "SelfHarm": 0,
            "Sexual": 0,
            "Violence": 0,
        }
        self.error = error
        self.calls = 0

    async def analyze_text(self, text: str) -> list[CategorySeverity]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [CategorySeverity(category, severity) for category, severity in self.scores.items()]
