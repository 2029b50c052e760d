"""
Telemetry events for Aegis.

Guardrail decisions are emitted as events with categorical properties and
numeric metrics. Events go to in-process handlers and, optionally, to
signed webhooks.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx
import structlog

logger = structlog.get_logger()


class EventType(str, Enum):
    """Types of events emitted by Aegis."""

    GUARDRAIL_VALIDATION = "guardrail.validation"
    GUARDRAIL_VIOLATION = "guardrail.violation"
    GUARDRAIL_AUDIT = "guardrail.audit"


@dataclass
class Event:
    """A telemetry event."""

    event_id: str
    event_type: EventType
    timestamp: datetime
    properties: dict[str, str]
    metrics: dict[str, float] = field(default_factory=dict)
    validation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "properties": self.properties,
            "metrics": self.metrics,
            "validation_id": self.validation_id,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


@dataclass
class WebhookTarget:
    """A webhook endpoint to receive events."""

    url: str
    secret: str | None = None  # For HMAC signing
    events: list[EventType] | None = None  # None = all events
    enabled: bool = True
    retry_count: int = 3
    timeout_seconds: float = 10.0
    headers: dict[str, str] = field(default_factory=dict)

    def should_receive(self, event_type: EventType) -> bool:
        """Check if this webhook should receive the event."""
        if not self.enabled:
            return False
        if self.events is None:
            return True
        return event_type in self.events

    def sign_payload(self, payload: str) -> str | None:
        """Generate HMAC signature for payload."""
        if not self.secret:
            return None
        return hmac.new(
            self.secret.encode(),
            payload.encode(),
            hashlib.sha256,
        ).hexdigest()


EventHandler = Callable[[Event], Awaitable[None]]


class EventEmitter:
    """
    Telemetry sink for guardrail events.

    Supports:
    - In-process event handlers (run in order, in a background task)
    - Webhook delivery with retries and signing (background tasks)
    - Event filtering by type
    """

    def __init__(
        self,
        webhooks: list[WebhookTarget] | None = None,
        enabled: bool = True,
    ):
        self._webhooks = webhooks or []
        self._enabled = enabled
        self._handlers: dict[EventType | None, list[EventHandler]] = {}
        self._http_client: httpx.AsyncClient | None = None
        self._pending: set[asyncio.Task[None]] = set()

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    def add_webhook(self, webhook: WebhookTarget) -> None:
        """Add a webhook target."""
        self._webhooks.append(webhook)

    def remove_webhook(self, url: str) -> None:
        """Remove a webhook by URL."""
        self._webhooks = [w for w in self._webhooks if w.url != url]

    def on(
        self,
        event_type: EventType | None = None,
        handler: EventHandler | None = None,
    ) -> Callable[[EventHandler], EventHandler]:
        """
        Register an event handler.

        Can be used as a decorator:
            @emitter.on(EventType.GUARDRAIL_VALIDATION)
            async def handle_validation(event):
                ...

        Or directly:
            emitter.on(EventType.GUARDRAIL_VALIDATION, handler_func)

        A handler registered for None receives every event.
        """

        def decorator(fn: EventHandler) -> EventHandler:
            self._handlers.setdefault(event_type, []).append(fn)
            return fn

        if handler:
            decorator(handler)
            return lambda fn: fn

        return decorator

    async def emit(
        self,
        event_type: EventType,
        properties: dict[str, str],
        metrics: dict[str, float] | None = None,
        validation_id: str | None = None,
    ) -> Event:
        """
        Emit an event to all registered handlers and webhooks.

        Handlers run in a background task; failures are logged and never
        raised. Use drain() to wait for delivery.

        Returns:
            The emitted Event object
        """
        event = Event(
            event_id=uuid.uuid4().hex[:16],
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            properties=properties,
            metrics=metrics or {},
            validation_id=validation_id,
        )

        if not self._enabled:
            return event

        self._track(self._dispatch(event))
        return event

    def _track(self, coro: Awaitable[None]) -> None:
        """Run coro in the background and keep it until it finishes."""
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispatch(self, event: Event) -> None:
        """Dispatch event to all handlers."""
        handlers = [
            *self._handlers.get(event.event_type, []),
            *self._handlers.get(None, []),
        ]

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.warning(
                    "Event handler failed",
                    handler=getattr(handler, "__name__", repr(handler)),
                    event_type=event.event_type.value,
                    error=str(e),
                )

        await self._send_webhooks(event)

    async def _send_webhooks(self, event: Event) -> None:
        """Send event to all matching webhooks."""
        matching_webhooks = [
            w for w in self._webhooks if w.should_receive(event.event_type)
        ]

        if not matching_webhooks:
            return

        client = await self._get_http_client()
        payload = event.to_json()

        for webhook in matching_webhooks:
            self._track(self._send_webhook_with_retry(client, webhook, payload, event))

    async def _send_webhook_with_retry(
        self,
        client: httpx.AsyncClient,
        webhook: WebhookTarget,
        payload: str,
        event: Event,
    ) -> None:
        """Send webhook with exponential backoff retry."""
        headers = {
            "Content-Type": "application/json",
            "X-Aegis-Event": event.event_type.value,
            "X-Aegis-Event-ID": event.event_id,
            "X-Aegis-Timestamp": event.timestamp.isoformat(),
            **webhook.headers,
        }

        signature = webhook.sign_payload(payload)
        if signature:
            headers["X-Aegis-Signature"] = f"sha256={signature}"

        for attempt in range(webhook.retry_count):
            try:
                response = await client.post(
                    webhook.url,
                    content=payload,
                    headers=headers,
                    timeout=webhook.timeout_seconds,
                )
                if response.status_code < 400:
                    logger.debug(
                        "Webhook delivered",
                        url=webhook.url,
                        event_type=event.event_type.value,
                        status=response.status_code,
                    )
                    return
                logger.warning(
                    "Webhook failed",
                    url=webhook.url,
                    status=response.status_code,
                    attempt=attempt + 1,
                )
            except Exception as e:
                logger.warning(
                    "Webhook error",
                    url=webhook.url,
                    error=str(e),
                    attempt=attempt + 1,
                )

            if attempt < webhook.retry_count - 1:
                await asyncio.sleep(2**attempt)

        logger.error(
            "Webhook delivery failed after retries",
            url=webhook.url,
            event_type=event.event_type.value,
        )

    async def drain(self) -> None:
        """Wait for in-flight handler dispatches and webhook deliveries."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Close resources."""
        await self.drain()
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


# Global event emitter
_emitter: EventEmitter | None = None


def get_event_emitter() -> EventEmitter:
    """Get the global event emitter."""
    global _emitter
    if _emitter is None:
        _emitter = EventEmitter()
    return _emitter


def configure_event_emitter(
    webhooks: list[WebhookTarget] | None = None,
    enabled: bool = True,
) -> EventEmitter:
    """Configure the global event emitter."""
    global _emitter
    _emitter = EventEmitter(webhooks=webhooks, enabled=enabled)
    return _emitter
