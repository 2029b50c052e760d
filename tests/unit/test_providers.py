"""Tests for classifier implementations."""

import json

import httpx
import pytest

from aegis.core.config import ContentSafetySettings
from aegis.providers.azure_content_safety import AzureContentSafetyClient, chunk_text
from aegis.providers.base import (
    AuthenticationError,
    CategorySeverity,
    ClassifierError,
    ClassifierUnavailableError,
    RateLimitError,
    StaticClassifier,
)


def make_client(handler, **kwargs):
    """Build a client whose HTTP traffic goes to handler."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AzureContentSafetyClient(
        endpoint="https://contoso.cognitiveservices.azure.com/",
        api_key="test-key",
        http_client=http_client,
        **kwargs,
    )


def analysis(**severities):
    return {
        "categoriesAnalysis": [
            {"category": category, "severity": severity}
            for category, severity in severities.items()
        ]
    }


class TestClassifierErrors:
    """Tests for classifier error classes."""

    def test_classifier_error(self):
        error = ClassifierError("Test error", classifier="azure", status_code=500, retryable=True)
        assert str(error) == "Test error"
        assert error.classifier == "azure"
        assert error.status_code == 500
        assert error.retryable is True

    def test_rate_limit_error(self):
        error = RateLimitError("Rate limited", retry_after=30.0)
        assert error.status_code == 429
        assert error.retryable is True
        assert error.retry_after == 30.0

    def test_authentication_error(self):
        error = AuthenticationError("Invalid key")
        assert error.status_code == 401
        assert error.retryable is False

    def test_unavailable_error(self):
        error = ClassifierUnavailableError("not configured")
        assert isinstance(error, ClassifierError)
        assert error.retryable is False


class TestStaticClassifier:
    """Tests for StaticClassifier."""

    @pytest.mark.asyncio
    async def test_default_scores(self):
        classifier = StaticClassifier()
        scores = await classifier.analyze_text("anything")
        assert {s.category for s in scores} == {"Hate", "SelfHarm", "Sexual", "Violence"}
        assert all(s.severity == 0 for s in scores)
        assert classifier.calls == 1

    @pytest.mark.asyncio
    async def test_configured_error(self):
        classifier = StaticClassifier(error=ClassifierError("boom"))
        with pytest.raises(ClassifierError):
            await classifier.analyze_text("anything")


class TestChunkText:
    """Tests for chunk_text."""

    def test_short_text(self):
        assert chunk_text("abc", 10) == ["abc"]

    def test_empty_text(self):
        assert chunk_text("", 10) == [""]

    def test_split(self):
        assert chunk_text("abcdefg", 3) == ["abc", "def", "g"]


class TestAzureContentSafetyClient:
    """Tests for AzureContentSafetyClient."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        captured = {}

        def handler(request):
            captured["request"] = request
            return httpx.Response(200, json=analysis(Hate=2, Violence=0))

        client = make_client(handler)
        scores = await client.analyze_text("some text")

        request = captured["request"]
        assert request.method == "POST"
        assert request.url.path == "/contentsafety/text:analyze"
        assert request.url.params["api-version"] == "2024-09-01"
        assert request.headers["Ocp-Apim-Subscription-Key"] == "test-key"
        assert json.loads(request.content) == {
            "text": "some text",
            "categories": ["Hate", "SelfHarm", "Sexual", "Violence"],
            "outputType": "FourSeverityLevels",
        }
        assert scores == [CategorySeverity("Hate", 2), CategorySeverity("Violence", 0)]

    @pytest.mark.asyncio
    async def test_long_text_takes_worst_chunk(self):
        responses = iter([
            analysis(Hate=0, Violence=2),
            analysis(Hate=4, Violence=0),
            analysis(Hate=2, Violence=0),
        ])
        seen = []

        def handler(request):
            seen.append(json.loads(request.content)["text"])
            return httpx.Response(200, json=next(responses))

        client = make_client(handler, max_text_length=4)
        scores = await client.analyze_text("aaaabbbbcc")

        assert seen == ["aaaa", "bbbb", "cc"]
        assert {s.category: s.severity for s in scores} == {"Hate": 4, "Violence": 2}

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = AzureContentSafetyClient(endpoint=None, api_key=None)
        with pytest.raises(ClassifierUnavailableError):
            await client.analyze_text("text")

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = make_client(lambda request: httpx.Response(429, headers={"Retry-After": "3"}))
        with pytest.raises(RateLimitError) as exc_info:
            await client.analyze_text("text")
        assert exc_info.value.retry_after == 3.0
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failure(self, status):
        client = make_client(lambda request: httpx.Response(status))
        with pytest.raises(AuthenticationError) as exc_info:
            await client.analyze_text("text")
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [(500, True), (503, True), (400, False)])
    async def test_http_errors(self, status, retryable):
        client = make_client(lambda request: httpx.Response(status, text="error"))
        with pytest.raises(ClassifierError) as exc_info:
            await client.analyze_text("text")
        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(ClassifierUnavailableError) as exc_info:
            await client.analyze_text("text")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"categoriesAnalysis": [{"severity": 2}]})
        )
        with pytest.raises(ClassifierError):
            await client.analyze_text("text")

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self):
        client = make_client(lambda request: httpx.Response(200, json=analysis()))
        http_client = client._http_client
        await client.close()
        assert http_client.is_closed is False
        await http_client.aclose()

    def test_from_settings(self):
        settings = ContentSafetySettings(
            endpoint="https://example.azure.com/",
            api_key="secret",
            max_text_length=500,
        )
        client = AzureContentSafetyClient.from_settings(settings)

        assert client.url == "https://example.azure.com/contentsafety/text:analyze"
        assert client.api_key == "secret"
        assert client.max_text_length == 500
