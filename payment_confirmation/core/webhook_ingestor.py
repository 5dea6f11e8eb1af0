"""
Webhook ingestion: provider callback to validated state transition.

Flow for every delivery:
1. Verify the HMAC signature over the raw body
2. Parse the JSON body
3. Map the provider status through the status table
4. Validate correlation fields
5. Upsert the transaction and emit an outcome event if anything changed

Deliveries are safe to repeat: the store ignores writes that would not
change a row, and no event is emitted for them.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import pydantic
import structlog

from payment_confirmation.core.event_tracker import EventTracker, EventType
from payment_confirmation.core.exceptions import NotFoundError, ValidationError
from payment_confirmation.core.signature import SignatureVerifier
from payment_confirmation.core.status_mapping import (
    ACCEPTED_PAYMENT_CODE_STATUSES,
    PROVIDER_STATUS_MAP,
    map_provider_status,
    parse_provider_status,
)
from payment_confirmation.core.transaction_store import TransactionStore, UpsertResult
from payment_confirmation.integrations.dana import PaymentCodeNotification, StatusNotification

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    """What a delivery did to the store."""

    outcome: str  # applied, duplicate, ignored
    transaction_id: Optional[str] = None
    status: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome == "applied"


class WebhookIngestor:
    """
    Applies provider notifications to the transaction store.

    Supported notifications:
    - payment code issued/paid: creates or advances the transaction
    - status notification: moves an existing transaction to the mapped status
    """

    def __init__(
        self,
        store: TransactionStore,
        tracker: EventTracker,
        verifier: SignatureVerifier,
        provider: str,
        default_package_id: str = "basic",
    ) -> None:
        """
        Initialize webhook ingestor.

        Args:
            store: Transaction store
            tracker: Analytics event tracker
            verifier: Provider signature verifier
            provider: Payment channel identifier stored on created rows
            default_package_id: Package used when metadata carries none
        """
        self.store = store
        self.tracker = tracker
        self.verifier = verifier
        self.provider = provider
        self.default_package_id = default_package_id

    @staticmethod
    def parse_body(body: bytes) -> Dict[str, Any]:
        """
        Parse a webhook body into a JSON object.

        Raises:
            ValidationError: If the body is not a JSON object
        """
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ValidationError("Malformed JSON payload") from e

        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload must be a JSON object")
        return payload

    async def ingest_payment_code(self, body: bytes, signature: Optional[str]) -> IngestionResult:
        """
        Process a payment code notification.

        Args:
            body: Raw request body
            signature: Signature header value

        Returns:
            IngestionResult: Outcome of the delivery

        Raises:
            AuthenticityError: If the signature check fails
            ValidationError: If the payload is malformed or lacks correlation fields
            DependencyError: If the store is unavailable
        """
        self.verifier.verify(body, signature)
        payload = self.parse_body(body)

        try:
            notification = PaymentCodeNotification.model_validate(payload)
        except pydantic.ValidationError as e:
            logger.warning("payment_code_payload_invalid", errors=e.errors(include_url=False))
            raise ValidationError("Malformed payment code notification") from e

        logger.info("payment_code_notification_received", payload_summary=notification.summary())

        provider_status = parse_provider_status(notification.status)
        if provider_status is None:
            logger.warning(
                "payment_code_status_unmapped",
                status=notification.status,
                payment_code_id=notification.external_code_id,
            )
            return IngestionResult(outcome="ignored", transaction_id=notification.external_code_id)

        if provider_status not in ACCEPTED_PAYMENT_CODE_STATUSES:
            logger.warning(
                "payment_code_not_successfully_created",
                status=notification.status,
                payment_code_id=notification.external_code_id,
            )
            return IngestionResult(outcome="ignored", transaction_id=notification.external_code_id)

        user_id = notification.user_id
        if not user_id:
            logger.error(
                "payment_code_missing_user_id",
                payment_code_id=notification.external_code_id,
                metadata=notification.metadata,
            )
            raise ValidationError("User ID not found")

        if not notification.external_code_id:
            logger.error("payment_code_missing_id", metadata=notification.metadata)
            raise ValidationError("Payment code ID not found")

        details = dict(notification.metadata)
        if notification.payment_code:
            details["paymentCode"] = notification.payment_code

        result = await self.store.upsert(
            notification.external_code_id,
            PROVIDER_STATUS_MAP[provider_status],
            user_id=user_id,
            package_id=notification.package_id or self.default_package_id,
            provider=self.provider,
            amount=notification.amount,
            details=details,
            expiry_time=notification.expiry_time,
        )

        logger.info(
            "payment_code_processed",
            user_id=user_id,
            payment_code_id=notification.external_code_id,
            expiry_time=notification.expiry_time,
            applied=result.applied,
        )
        return self._record_outcome(result, source="payment_code")

    async def ingest_status_notification(
        self, body: bytes, signature: Optional[str]
    ) -> IngestionResult:
        """
        Process a payment status notification for an existing transaction.

        Unknown transactions are ignored rather than created: the
        notification carries no user or package to build a complete row.

        Args:
            body: Raw request body
            signature: Signature header value

        Returns:
            IngestionResult: Outcome of the delivery

        Raises:
            AuthenticityError: If the signature check fails
            ValidationError: If the payload is malformed or lacks the order number
            DependencyError: If the store is unavailable
        """
        self.verifier.verify(body, signature)
        payload = self.parse_body(body)

        try:
            notification = StatusNotification.model_validate(payload).response
        except pydantic.ValidationError as e:
            logger.warning("status_notification_payload_invalid", errors=e.errors(include_url=False))
            raise ValidationError("Malformed status notification") from e

        order_no = notification.merchant_order_no
        logger.info(
            "status_notification_received",
            notify_type=notification.notify_type,
            merchant_order_no=order_no,
            status=notification.status,
            status_update_time=notification.status_update_time,
        )

        if not order_no:
            raise ValidationError("merchantOrderNo is required")

        status = map_provider_status(notification.status)
        if status is None:
            logger.warning(
                "status_notification_status_unmapped",
                status=notification.status,
                merchant_order_no=order_no,
            )
            return IngestionResult(outcome="ignored", transaction_id=order_no)

        try:
            existing = await self.store.get(order_no)
        except NotFoundError:
            logger.warning("status_notification_unknown_transaction", merchant_order_no=order_no)
            return IngestionResult(outcome="ignored", transaction_id=order_no)

        result = await self.store.upsert(
            order_no,
            status,
            user_id=existing.user_id,
            package_id=existing.package_id,
            provider=existing.provider,
        )

        logger.info(
            "transaction_status_notification_applied" if result.applied
            else "transaction_status_notification_unchanged",
            transaction_id=order_no,
            previous_status=existing.status,
            status=result.transaction.status,
        )
        return self._record_outcome(result, source="status_notification")

    def _record_outcome(self, result: UpsertResult, source: str) -> IngestionResult:
        transaction = result.transaction
        if not result.applied:
            logger.info(
                "webhook_replay_ignored",
                transaction_id=transaction.id,
                status=transaction.status,
                source=source,
            )
            return IngestionResult(
                outcome="duplicate", transaction_id=transaction.id, status=transaction.status
            )

        self.tracker.emit(
            EventType.PAYMENT_WEBHOOK,
            {
                "transactionId": transaction.id,
                "status": transaction.status,
                "verified": transaction.is_verified,
                "packageId": transaction.package_id,
                "provider": transaction.provider,
                "source": source,
            },
        )
        return IngestionResult(
            outcome="applied", transaction_id=transaction.id, status=transaction.status
        )
