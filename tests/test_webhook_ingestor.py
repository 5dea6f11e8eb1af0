"""
Tests for webhook ingestion.

Covers authenticity, payload validation, status translation and
idempotent replay of provider deliveries.
"""
from typing import Any, Dict

import pytest

from payment_confirmation.core.event_tracker import EventTracker
from payment_confirmation.core.exceptions import (
    AuthenticityError,
    NotFoundError,
    ValidationError,
)
from payment_confirmation.core.transaction_store import TransactionStore
from payment_confirmation.core.webhook_ingestor import WebhookIngestor

from tests.helpers import RecordingSink, encode, sign


def signed(payload: Any) -> Dict[str, Any]:
    body = encode(payload)
    return {"body": body, "signature": sign(body)}


class TestPaymentCodeIngestion:
    """Test suite for payment code notifications."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_created_code_creates_pending_transaction(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        tracker: EventTracker,
        sink: RecordingSink,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        result = await ingestor.ingest_payment_code(**signed(payment_code_payload))
        await tracker.drain()

        assert result.outcome == "applied"
        stored = await store.get("pc_1001")
        assert stored.status == "PENDING"
        assert stored.user_id == "user_42"
        assert stored.package_id == "premium"
        assert stored.provider == "dana"
        assert stored.amount == 75000
        assert stored.details["paymentCode"] == "8808123456"
        assert stored.expiry_time is not None

        events = sink.of_type("payment_webhook")
        assert len(events) == 1
        assert events[0]["attributes"]["transactionId"] == "pc_1001"
        assert events[0]["attributes"]["verified"] is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider_status", ["SUCCESS", "PAID", "success"])
    async def test_paid_code_completes_transaction(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
        provider_status: str,
    ) -> None:
        payment_code_payload["status"] = provider_status

        await ingestor.ingest_payment_code(**signed(payment_code_payload))

        assert (await store.get("pc_1001")).status == "COMPLETED"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_a_no_op(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        tracker: EventTracker,
        sink: RecordingSink,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        delivery = signed(payment_code_payload)

        first = await ingestor.ingest_payment_code(**delivery)
        second = await ingestor.ingest_payment_code(**delivery)
        await tracker.drain()

        assert first.outcome == "applied"
        assert second.outcome == "duplicate"
        assert (await store.get("pc_1001")).status == "PENDING"
        assert len(sink.of_type("payment_webhook")) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_external_code_id_alias(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        del payment_code_payload["payment_code_id"]
        payment_code_payload["externalCodeId"] = "ext_77"

        await ingestor.ingest_payment_code(**signed(payment_code_payload))

        assert (await store.get("ext_77")).status == "PENDING"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_package_uses_default(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        del payment_code_payload["metadata"]["packageId"]

        await ingestor.ingest_payment_code(**signed(payment_code_payload))

        assert (await store.get("pc_1001")).package_id == "basic"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider_status", ["FAILED", "EXPIRED", "REFUNDED", None])
    async def test_other_statuses_are_ignored(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
        provider_status: Any,
    ) -> None:
        payment_code_payload["status"] = provider_status

        result = await ingestor.ingest_payment_code(**signed(payment_code_payload))

        assert result.outcome == "ignored"
        with pytest.raises(NotFoundError):
            await store.get("pc_1001")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ignored_status_leaves_existing_transaction(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        await ingestor.ingest_payment_code(**signed(payment_code_payload))
        payment_code_payload["status"] = "CANCELLED"

        result = await ingestor.ingest_payment_code(**signed(payment_code_payload))

        assert result.outcome == "ignored"
        assert (await store.get("pc_1001")).status == "PENDING"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_user_id_is_rejected(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        del payment_code_payload["metadata"]["userId"]

        with pytest.raises(ValidationError, match="User ID not found"):
            await ingestor.ingest_payment_code(**signed(payment_code_payload))

        with pytest.raises(NotFoundError):
            await store.get("pc_1001")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_code_id_is_rejected(
        self, ingestor: WebhookIngestor, payment_code_payload: Dict[str, Any]
    ) -> None:
        del payment_code_payload["payment_code_id"]

        with pytest.raises(ValidationError):
            await ingestor.ingest_payment_code(**signed(payment_code_payload))

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]", b""])
    async def test_malformed_body_is_rejected(
        self, ingestor: WebhookIngestor, body: bytes
    ) -> None:
        with pytest.raises(ValidationError):
            await ingestor.ingest_payment_code(body, sign(body))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bad_signature_is_rejected_before_parsing(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        body = encode(payment_code_payload)

        with pytest.raises(AuthenticityError):
            await ingestor.ingest_payment_code(body, "0" * 64)
        with pytest.raises(AuthenticityError):
            await ingestor.ingest_payment_code(body, None)
        with pytest.raises(AuthenticityError):
            await ingestor.ingest_payment_code(b"not json", None)

        with pytest.raises(NotFoundError):
            await store.get("pc_1001")


class TestStatusNotificationIngestion:
    """Test suite for payment status notifications."""

    @staticmethod
    def notification(order_no: Any, status: Any) -> Dict[str, Any]:
        return {
            "response": {
                "notifyType": "PAYMENT_STATUS",
                "merchantOrderNo": order_no,
                "status": status,
                "statusUpdateTime": "2025-01-06T10:05:00+00:00",
            }
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_completes_existing_transaction(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        tracker: EventTracker,
        sink: RecordingSink,
    ) -> None:
        await store.upsert("pc_9", "PENDING", user_id="u1", package_id="basic", provider="dana")

        result = await ingestor.ingest_status_notification(
            **signed(self.notification("pc_9", "SUCCESS"))
        )
        await tracker.drain()

        assert result.outcome == "applied"
        assert (await store.get("pc_9")).status == "COMPLETED"
        events = sink.of_type("payment_webhook")
        assert len(events) == 1
        assert events[0]["attributes"]["verified"] is True
        assert events[0]["attributes"]["source"] == "status_notification"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_closed_fails_transaction(
        self, ingestor: WebhookIngestor, store: TransactionStore
    ) -> None:
        await store.upsert("pc_10", "PENDING", user_id="u1", package_id="basic", provider="dana")

        await ingestor.ingest_status_notification(**signed(self.notification("pc_10", "CLOSED")))

        assert (await store.get("pc_10")).status == "FAILED"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_terminal_transaction_does_not_regress(
        self, ingestor: WebhookIngestor, store: TransactionStore
    ) -> None:
        await store.upsert("pc_11", "COMPLETED", user_id="u1", package_id="basic", provider="dana")

        result = await ingestor.ingest_status_notification(
            **signed(self.notification("pc_11", "CANCELLED"))
        )

        assert result.outcome == "duplicate"
        assert (await store.get("pc_11")).status == "COMPLETED"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_transaction_is_ignored(
        self, ingestor: WebhookIngestor, store: TransactionStore
    ) -> None:
        result = await ingestor.ingest_status_notification(
            **signed(self.notification("pc_unknown", "FAILED"))
        )

        assert result.outcome == "ignored"
        with pytest.raises(NotFoundError):
            await store.get("pc_unknown")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unmapped_status_is_ignored(
        self, ingestor: WebhookIngestor, store: TransactionStore
    ) -> None:
        await store.upsert("pc_12", "PENDING", user_id="u1", package_id="basic", provider="dana")

        result = await ingestor.ingest_status_notification(
            **signed(self.notification("pc_12", "REFUNDED"))
        )

        assert result.outcome == "ignored"
        assert (await store.get("pc_12")).status == "PENDING"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_numeric_status_is_ignored(
        self, ingestor: WebhookIngestor, store: TransactionStore
    ) -> None:
        await store.upsert("pc_13", "PENDING", user_id="u1", package_id="basic", provider="dana")

        result = await ingestor.ingest_status_notification(**signed(self.notification("pc_13", 5)))

        assert result.outcome == "ignored"
        assert (await store.get("pc_13")).status == "PENDING"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_late_code_retry_does_not_revive_expired_transaction(
        self,
        ingestor: WebhookIngestor,
        store: TransactionStore,
        payment_code_payload: Dict[str, Any],
    ) -> None:
        created = signed(payment_code_payload)
        await ingestor.ingest_payment_code(**created)
        await ingestor.ingest_status_notification(
            **signed(self.notification("pc_1001", "EXPIRED"))
        )

        result = await ingestor.ingest_payment_code(**created)

        assert result.outcome == "duplicate"
        assert (await store.get("pc_1001")).status == "EXPIRED"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_order_number_is_rejected(self, ingestor: WebhookIngestor) -> None:
        with pytest.raises(ValidationError):
            await ingestor.ingest_status_notification(**signed(self.notification(None, "SUCCESS")))
