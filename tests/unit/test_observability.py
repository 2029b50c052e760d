"""Tests for audit records and telemetry events."""

import asyncio
import hashlib
import hmac
import json

import httpx
import pytest

from aegis.core.models import (
    GuardrailCheck,
    GuardrailContext,
    GuardrailResult,
    IndustryType,
    Severity,
)
from aegis.observability.audit import (
    CONTENT_HASH_LENGTH,
    AuditRecorder,
    audit_record,
    build_audit,
    compute_content_hash,
)
from aegis.observability.events import (
    EventEmitter,
    EventType,
    WebhookTarget,
    configure_event_emitter,
    get_event_emitter,
)
from aegis.utils.metrics import GuardrailMetrics


def blocked_result():
    return GuardrailResult.from_checks(
        [GuardrailCheck(check_type="PromptInjection", passed=False, severity=Severity.HIGH)]
    )


class TestContentHash:
    """Tests for compute_content_hash."""

    def test_fixed_length(self):
        assert len(compute_content_hash("")) == CONTENT_HASH_LENGTH
        assert len(compute_content_hash("x" * 10_000)) == CONTENT_HASH_LENGTH

    def test_sha256_prefix(self):
        expected = hashlib.sha256("hello".encode("utf-8")).hexdigest()[:16]
        assert compute_content_hash("hello") == expected

    def test_deterministic(self):
        assert compute_content_hash("same") == compute_content_hash("same")
        assert compute_content_hash("same") != compute_content_hash("different")


class TestAuditRecord:
    """Tests for audit construction."""

    def test_build_audit(self):
        context = GuardrailContext(user_id="u1", session_id="s1")
        audit = build_audit("secret 123-45-6789", blocked_result(), context)

        assert audit.user_id == "u1"
        assert audit.session_id == "s1"
        assert audit.content_hash == compute_content_hash("secret 123-45-6789")

    def test_record_has_no_content(self):
        audit = build_audit("secret 123-45-6789", blocked_result(), GuardrailContext())
        record = audit_record(audit)

        assert "123-45-6789" not in json.dumps(record)
        assert record["validation_result"]["recommended_action"] == "block"
        assert record["validation_result"]["max_severity"] == "HIGH"


class TestAuditRecorder:
    """Tests for AuditRecorder."""

    @pytest.mark.asyncio
    async def test_query_newest_first(self):
        recorder = AuditRecorder()
        for user in ["a", "b", "a"]:
            context = GuardrailContext(user_id=user)
            await recorder.record(build_audit(user, blocked_result(), context))

        audits = recorder.query(user_id="a")
        assert len(audits) == 2
        assert audits[0].timestamp >= audits[1].timestamp
        assert len(recorder.query(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_buffer_bounded(self):
        recorder = AuditRecorder(buffer_size=3)
        for i in range(5):
            await recorder.record(build_audit(str(i), blocked_result(), GuardrailContext()))

        assert len(recorder.query()) == 3
        assert recorder.query()[0].content_hash == compute_content_hash("4")

    @pytest.mark.asyncio
    async def test_disabled(self):
        recorder = AuditRecorder(enabled=False)
        await recorder.record(build_audit("x", blocked_result(), GuardrailContext()))
        assert recorder.query() == []

    @pytest.mark.asyncio
    async def test_track_validation(self):
        metrics = GuardrailMetrics()
        recorder = AuditRecorder(metrics=metrics)
        context = GuardrailContext(industry=IndustryType.FINANCE)
        await recorder.track_validation(blocked_result(), context)

        summary = metrics.get_summary()
        assert summary["blocked"] == 1
        assert summary["severities"] == {3: 1}
        assert metrics.get_recent()[0]["industry"] == "finance"

    @pytest.mark.asyncio
    async def test_telemetry_disabled(self):
        metrics = GuardrailMetrics()
        recorder = AuditRecorder(metrics=metrics, telemetry_enabled=False)
        await recorder.track_validation(blocked_result(), GuardrailContext())
        assert metrics.get_summary()["total_validations"] == 0


class TestEventEmitter:
    """Tests for EventEmitter."""

    @pytest.mark.asyncio
    async def test_handlers_by_type(self):
        emitter = EventEmitter()
        validations, everything = [], []

        @emitter.on(EventType.GUARDRAIL_VALIDATION)
        async def on_validation(event):
            validations.append(event)

        @emitter.on()
        async def on_any(event):
            everything.append(event)

        await emitter.emit(EventType.GUARDRAIL_VALIDATION, {"a": "1"}, {"m": 1.0})
        await emitter.emit(EventType.GUARDRAIL_VIOLATION, {"b": "2"})
        await emitter.drain()

        assert len(validations) == 1
        assert validations[0].metrics == {"m": 1.0}
        assert [e.event_type for e in everything] == [
            EventType.GUARDRAIL_VALIDATION,
            EventType.GUARDRAIL_VIOLATION,
        ]

    @pytest.mark.asyncio
    async def test_handler_failure_isolated(self):
        emitter = EventEmitter()
        received = []

        @emitter.on(EventType.GUARDRAIL_AUDIT)
        async def broken(event):
            raise RuntimeError("handler bug")

        @emitter.on(EventType.GUARDRAIL_AUDIT)
        async def working(event):
            received.append(event)

        event = await emitter.emit(EventType.GUARDRAIL_AUDIT, {})
        await emitter.drain()
        assert received == [event]

    @pytest.mark.asyncio
    async def test_slow_handler_does_not_block_emit(self):
        emitter = EventEmitter()
        release = asyncio.Event()
        received = []

        @emitter.on()
        async def slow(event):
            await release.wait()
            received.append(event)

        event = await asyncio.wait_for(emitter.emit(EventType.GUARDRAIL_AUDIT, {}), timeout=1.0)
        assert received == []

        release.set()
        await emitter.drain()
        assert received == [event]

    @pytest.mark.asyncio
    async def test_disabled(self):
        emitter = EventEmitter(enabled=False)
        received = []

        @emitter.on()
        async def capture(event):
            received.append(event)

        event = await emitter.emit(EventType.GUARDRAIL_VALIDATION, {"k": "v"})
        await emitter.drain()
        assert event.properties == {"k": "v"}
        assert received == []

    @pytest.mark.asyncio
    async def test_event_serialization(self):
        event = await EventEmitter().emit(
            EventType.GUARDRAIL_VALIDATION,
            {"industry": "general"},
            {"severity_level": 2.0},
            validation_id="v-1",
        )
        data = json.loads(event.to_json())

        assert data["event_type"] == "guardrail.validation"
        assert data["validation_id"] == "v-1"
        assert data["metrics"] == {"severity_level": 2.0}
        assert len(data["event_id"]) == 16

    @pytest.mark.asyncio
    async def test_webhook_delivery(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        webhook = WebhookTarget(
            url="https://hooks.example.com/aegis",
            secret="s3cret",
            events=[EventType.GUARDRAIL_VIOLATION],
        )
        emitter = EventEmitter(webhooks=[webhook])
        emitter._http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        await emitter.emit(EventType.GUARDRAIL_VALIDATION, {"ignored": "yes"})
        event = await emitter.emit(EventType.GUARDRAIL_VIOLATION, {"violation_type": "PII"})
        await emitter.close()

        assert len(requests) == 1
        request = requests[0]
        body = request.content.decode()
        expected = hmac.new(b"s3cret", body.encode(), hashlib.sha256).hexdigest()

        assert request.headers["X-Aegis-Event"] == "guardrail.violation"
        assert request.headers["X-Aegis-Event-ID"] == event.event_id
        assert request.headers["X-Aegis-Signature"] == f"sha256={expected}"
        assert json.loads(body)["properties"] == {"violation_type": "PII"}


class TestWebhookTarget:
    """Tests for WebhookTarget."""

    def test_should_receive(self):
        webhook = WebhookTarget(url="https://x", events=[EventType.GUARDRAIL_AUDIT])
        assert webhook.should_receive(EventType.GUARDRAIL_AUDIT)
        assert not webhook.should_receive(EventType.GUARDRAIL_VALIDATION)
        assert WebhookTarget(url="https://x").should_receive(EventType.GUARDRAIL_VALIDATION)
        assert not WebhookTarget(url="https://x", enabled=False).should_receive(
            EventType.GUARDRAIL_AUDIT
        )

    def test_unsigned_without_secret(self):
        assert WebhookTarget(url="https://x").sign_payload("{}") is None


class TestGlobalEmitter:
    """Tests for the process-wide emitter."""

    def test_configure_replaces_global(self):
        emitter = configure_event_emitter(enabled=False)
        assert get_event_emitter() is emitter
        configure_event_emitter()
