"""
Azure AI Content Safety classifier.

Calls the text:analyze REST operation and returns per-category severities.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from aegis.core.config import ContentSafetySettings
from aegis.providers.base import (
    AuthenticationError,
    CategorySeverity,
    ClassifierError,
    ClassifierUnavailableError,
    ContentClassifier,
    RateLimitError,
)

logger = structlog.get_logger()


def chunk_text(text: str, max_length: int) -> list[str]:
    """Split text into consecutive chunks of at most max_length characters."""
    if len(text) <= max_length:
        return [text]
    return [text[i:i + max_length] for i in range(0, len(text), max_length)]


class AzureContentSafetyClient(ContentClassifier):
    """
    Client for Azure AI Content Safety.

    Texts longer than the service limit are split into chunks; the reported
    severity of each category is the maximum over all chunks.
    """

    name = "azure_content_safety"

    def __init__(
        self,
        endpoint: str | None,
        api_key: str | None,
        api_version: str = "2024-09-01",
        categories: list[str] | None = None,
        output_type: str = "FourSeverityLevels",
        max_text_length: int = 10_000,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.api_key = api_key
        self.api_version = api_version
        self.categories = categories or ["Hate", "SelfHarm", "Sexual", "Violence"]
        self.output_type = output_type
        self.max_text_length = max_text_length
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(cls, settings: ContentSafetySettings) -> "AzureContentSafetyClient":
        """Create a client from settings."""
        return cls(
            endpoint=settings.endpoint,
            api_key=settings.api_key.get_secret_value() if settings.api_key else None,
            api_version=settings.api_version,
            categories=settings.categories,
            output_type=settings.output_type,
            max_text_length=settings.max_text_length,
            timeout=settings.timeout_seconds,
        )

    @property
    def url(self) -> str:
        return f"{self.endpoint}/contentsafety/text:analyze"

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if we created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def analyze_text(self, text: str) -> list[CategorySeverity]:
        if not self.endpoint or not self.api_key:
            raise ClassifierUnavailableError(
                "Content safety endpoint or key is not configured",
                classifier=self.name,
            )

        worst: dict[str, int] = {}
        for chunk in chunk_text(text, self.max_text_length):
            for result in await self._analyze_chunk(chunk):
                worst[result.category] = max(worst.get(result.category, 0), result.severity)

        return [CategorySeverity(category, severity) for category, severity in worst.items()]

    async def _analyze_chunk(self, text: str) -> list[CategorySeverity]:
        client = await self._get_http_client()
        payload = {
            "text": text,
            "categories": self.categories,
            "outputType": self.output_type,
        }

        try:
            response = await client.post(
                self.url,
                params={"api-version": self.api_version},
                headers={
                    "Content-Type": "application/json",
                    "Ocp-Apim-Subscription-Key": self.api_key or "",
                },
                json=payload,
            )
        except httpx.TimeoutException as e:
            raise ClassifierUnavailableError(
                f"Content safety request timed out: {e}",
                classifier=self.name,
                retryable=True,
            ) from e
        except httpx.RequestError as e:
            raise ClassifierUnavailableError(
                f"Content safety request failed: {e}",
                classifier=self.name,
                retryable=True,
            ) from e

        self._raise_for_status(response)
        return self._parse_response(response.json())

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Content safety rate limit exceeded",
                classifier=self.name,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status in (401, 403):
            raise AuthenticationError(
                "Content safety rejected the credentials",
                classifier=self.name,
                status_code=status,
            )

        logger.warning(
            "Content safety request failed",
            status_code=status,
            body=response.text[:200],
        )
        raise ClassifierError(
            f"Content safety returned HTTP {status}",
            classifier=self.name,
            status_code=status,
            retryable=status >= 500,
        )

    def _parse_response(self, data: dict[str, Any]) -> list[CategorySeverity]:
        try:
            return [
                CategorySeverity(
                    category=str(item["category"]),
                    severity=int(item.get("severity") or 0),
                )
                for item in data.get("categoriesAnalysis", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ClassifierError(
                f"Malformed content safety response: {e}",
                classifier=self.name,
            ) from e
