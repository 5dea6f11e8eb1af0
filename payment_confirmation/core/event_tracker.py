"""
Fire-and-forget analytics events.

Delivery is at most effort: every emission runs as a background task with a
bounded timeout, and failures are logged and counted, never raised. Consumers
must tolerate dropped or reordered events.
"""
import asyncio
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Set

import httpx
import structlog

from payment_confirmation.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class EventType(str, Enum):
    """Event types emitted by the confirmation flow."""

    PAYMENT_VERIFICATION = "payment_verification"
    PAYMENT_WEBHOOK = "payment_webhook"
    PAYMENT_REDIRECT = "payment_redirect"


class EventSink(Protocol):
    """Append-only destination for analytics events."""

    async def send(self, event: Dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        ...


class LogEventSink:
    """Writes events to the structured log."""

    async def send(self, event: Dict[str, Any]) -> None:
        logger.info("analytics_event", event_type=event["type"], attributes=event["attributes"])

    async def close(self) -> None:
        return None


class HttpEventSink:
    """
    Posts events to an analytics backend.

    Sends ``{"type": ..., "attributes": {...}}`` as JSON; any non-2xx answer
    counts as a failed delivery.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def send(self, event: Dict[str, Any]) -> None:
        response = await self._client.post(self.url, json=event)
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()


def sanitize_attributes(attributes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Make event attributes JSON-friendly.

    Datetimes become ISO strings, enums their values, and None an empty
    string. A ``timestamp`` is added when absent.
    """
    sanitized: Dict[str, Any] = {}
    for key, value in attributes.items():
        if isinstance(value, (datetime, date)):
            sanitized[key] = value.isoformat()
        elif isinstance(value, Enum):
            sanitized[key] = value.value
        elif value is None:
            sanitized[key] = ""
        else:
            sanitized[key] = value

    sanitized.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return sanitized


class EventTracker:
    """
    Emits analytics events without blocking the caller.

    Example:
        tracker = EventTracker(LogEventSink())
        tracker.emit(EventType.PAYMENT_VERIFICATION, {"transactionId": "pc1"})
    """

    def __init__(self, sink: EventSink, timeout_seconds: float = 2.0) -> None:
        """
        Initialize event tracker.

        Args:
            sink: Destination for events
            timeout_seconds: Upper bound for a single delivery
        """
        self.sink = sink
        self.timeout_seconds = timeout_seconds
        self._pending: Set[asyncio.Task] = set()

    def emit(self, event_type: EventType | str, attributes: Mapping[str, Any]) -> None:
        """
        Schedule delivery of one event. Never raises.

        Args:
            event_type: Event type
            attributes: Event attributes
        """
        type_name = event_type.value if isinstance(event_type, EventType) else str(event_type)
        try:
            event = {"type": type_name, "attributes": sanitize_attributes(attributes)}
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except Exception as e:
            logger.warning("analytics_event_not_scheduled", event_type=type_name, error=str(e))
            metrics.record_event_delivery(type_name, "failed")
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: Dict[str, Any]) -> None:
        event_type = event["type"]
        try:
            await asyncio.wait_for(self.sink.send(event), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "analytics_event_timeout",
                event_type=event_type,
                timeout_seconds=self.timeout_seconds,
            )
            metrics.record_event_delivery(event_type, "timeout")
        except Exception as e:
            logger.warning("analytics_event_failed", event_type=event_type, error=str(e))
            metrics.record_event_delivery(event_type, "failed")
        else:
            metrics.record_event_delivery(event_type, "delivered")

    @property
    def pending_count(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all scheduled deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Drain pending deliveries and close the sink."""
        await self.drain()
        try:
            await self.sink.close()
        except Exception as e:
            logger.warning("analytics_sink_close_failed", error=str(e))
