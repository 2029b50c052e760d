"""Content-safety classifier implementations."""

from aegis.providers.base import (
    ContentClassifier,
    CategorySeverity,
    StaticClassifier,
    ClassifierError,
    ClassifierUnavailableError,
    RateLimitError,
    AuthenticationError,
)
from aegis.providers.azure_content_safety import AzureContentSafetyClient

__all__ = [
    "ContentClassifier",
    "CategorySeverity",
    "StaticClassifier",
    "ClassifierError",
    "ClassifierUnavailableError",
    "RateLimitError",
    "AuthenticationError",
    "AzureContentSafetyClient",
]
