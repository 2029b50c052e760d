"""Tests for utility modules."""

import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from aegis.providers.base import AuthenticationError, ClassifierError, RateLimitError
from aegis.utils.metrics import GuardrailMetrics
from aegis.utils.retry import (
    RetryConfig,
    calculate_delay,
    is_retryable,
    retry_async,
    with_retry,
)


def record(metrics, action="allow", severity=0, failed=(), time_ms=10.0, industry="general"):
    metrics.record_validation(
        validation_id="v",
        action=action,
        severity_level=severity,
        processing_time_ms=time_ms,
        check_count=5,
        failed_check_types=list(failed),
        industry=industry,
    )


class TestGuardrailMetrics:
    """Tests for GuardrailMetrics."""

    def test_record_validation(self):
        metrics = GuardrailMetrics()
        record(metrics, action="block", severity=3, failed=["PromptInjection"])

        summary = metrics.get_summary()
        assert summary["total_validations"] == 1
        assert summary["blocked"] == 1
        assert summary["severities"] == {3: 1}
        assert summary["failed_checks"] == {"PromptInjection": 1}

    def test_allow_rate_counts_flagged(self):
        metrics = GuardrailMetrics()
        record(metrics, action="allow")
        record(metrics, action="flag", severity=1)
        record(metrics, action="redact", severity=2)
        record(metrics, action="block", severity=4)

        summary = metrics.get_summary()
        assert summary["allowed"] == 2
        assert summary["allow_rate"] == 0.5

    def test_avg_processing_time(self):
        metrics = GuardrailMetrics()
        record(metrics, time_ms=10.0)
        record(metrics, time_ms=30.0)
        assert metrics.get_summary()["avg_processing_time_ms"] == 20.0

    def test_empty_summary(self):
        summary = GuardrailMetrics().get_summary()
        assert summary["total_validations"] == 0
        assert summary["allow_rate"] == 0.0

    def test_recent_validations(self):
        metrics = GuardrailMetrics(max_history=4)
        for _ in range(6):
            record(metrics)

        assert len(metrics.get_recent(limit=3)) == 3
        assert len(metrics.get_recent()) == 4

    def test_record_violation(self):
        metrics = GuardrailMetrics()
        metrics.record_violation("PII")
        metrics.record_violation("PII")
        assert metrics.get_summary()["violations"] == {"PII": 2}

    def test_reset(self):
        metrics = GuardrailMetrics()
        record(metrics)
        metrics.record_violation("PII")
        metrics.reset()

        summary = metrics.get_summary()
        assert summary["total_validations"] == 0
        assert summary["violations"] == {}


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_values(self):
        config = RetryConfig()
        assert config.max_retries == 2
        assert config.base_delay == 0.5
        assert config.jitter is True

    def test_is_retryable(self):
        config = RetryConfig()
        assert is_retryable(ConnectionError(), config)
        assert is_retryable(asyncio.TimeoutError(), config)
        assert is_retryable(RateLimitError("slow down"), config)
        assert is_retryable(ClassifierError("5xx", retryable=True), config)
        assert not is_retryable(ClassifierError("4xx"), config)
        assert not is_retryable(AuthenticationError("bad key"), config)
        assert not is_retryable(ValueError(), config)


class TestCalculateDelay:
    """Tests for calculate_delay."""

    def test_exponential_backoff(self):
        config = RetryConfig(base_delay=1.0, jitter=False)
        assert calculate_delay(0, config) == 1.0
        assert calculate_delay(1, config) == 2.0
        assert calculate_delay(2, config) == 4.0

    def test_max_delay(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)
        assert calculate_delay(10, config) == 5.0

    def test_retry_after(self):
        config = RetryConfig(jitter=False)
        assert calculate_delay(0, config, retry_after=3.0) == 3.0

    def test_jitter_bounds(self):
        config = RetryConfig(base_delay=1.0, jitter=True)
        for _ in range(20):
            assert 0.5 <= calculate_delay(0, config) <= 1.5


class TestWithRetry:
    """Tests for the retry decorator and helper."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        decorated = with_retry(RetryConfig(jitter=False))(func)

        assert await decorated() == "ok"
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[ConnectionError(), "ok"])
        func.__name__ = "flaky"

        with patch("aegis.utils.retry.asyncio.sleep", AsyncMock()) as sleep:
            result = await retry_async(func, config=RetryConfig(max_retries=2, jitter=False))

        assert result == "ok"
        assert func.call_count == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_uses_retry_after(self):
        func = AsyncMock(side_effect=[RateLimitError("slow", retry_after=2.0), "ok"])
        func.__name__ = "limited"

        with patch("aegis.utils.retry.asyncio.sleep", AsyncMock()) as sleep:
            await retry_async(func, config=RetryConfig(max_retries=1, jitter=False))

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        func.__name__ = "down"

        with patch("aegis.utils.retry.asyncio.sleep", AsyncMock()):
            with pytest.raises(ConnectionError):
                await retry_async(func, config=RetryConfig(max_retries=2, jitter=False))

        assert func.call_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        func = AsyncMock(side_effect=AuthenticationError("bad key"))
        func.__name__ = "auth"

        with pytest.raises(AuthenticationError):
            await retry_async(func, config=RetryConfig(max_retries=3))

        assert func.call_count == 1
