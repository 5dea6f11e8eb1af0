"""Shared test helpers."""
import json
from typing import Any, Dict, List

from payment_confirmation.core.signature import compute_signature

WEBHOOK_SECRET = "whsec_test_fake_secret"


class RecordingSink:
    """Event sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.closed = False

    async def send(self, event: Dict[str, Any]) -> None:
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event["type"] == event_type]


def sign(body: bytes) -> str:
    """Signature the provider would send for ``body``."""
    return compute_signature(body, WEBHOOK_SECRET)


def encode(payload: Any) -> bytes:
    return json.dumps(payload).encode()
