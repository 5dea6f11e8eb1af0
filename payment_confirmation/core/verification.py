"""
Payment verification queried by the client after checkout.

Reads the current status and reports it; the caller keeps polling until the
transaction is verified. Every lookup, hit or miss, emits exactly one
verification event. Store failures emit nothing.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import structlog

from payment_confirmation.core.event_tracker import EventTracker, EventType
from payment_confirmation.core.exceptions import NotFoundError, ValidationError
from payment_confirmation.core.transaction_store import TransactionStore
from payment_confirmation.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    """Verification answer for one transaction."""

    verified: bool
    status: str
    package_id: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses."""
        return {
            "verified": self.verified,
            "status": self.status,
            "packageId": self.package_id,
            "timestamp": self.timestamp.isoformat(),
        }


class VerificationService:
    """Answers "has this transaction been paid?" from the transaction store."""

    def __init__(self, store: TransactionStore, tracker: EventTracker) -> None:
        self.store = store
        self.tracker = tracker

    async def verify(self, transaction_id: Optional[str]) -> VerificationResult:
        """
        Verify a transaction.

        Args:
            transaction_id: Identifier returned to the client at checkout

        Returns:
            VerificationResult: Current status; verified only when COMPLETED

        Raises:
            ValidationError: If no transaction id was supplied
            NotFoundError: If the id is unknown
            DependencyError: If the store is unavailable
        """
        if not transaction_id:
            logger.warning("verification_missing_transaction_id")
            metrics.record_verification("invalid")
            raise ValidationError("Transaction ID is required")

        logger.info("verifying_payment_transaction", transaction_id=transaction_id)

        try:
            transaction = await self.store.get(transaction_id)
        except NotFoundError:
            logger.warning("verification_transaction_not_found", transaction_id=transaction_id)
            metrics.record_verification("not_found")
            self.tracker.emit(
                EventType.PAYMENT_VERIFICATION,
                {
                    "transactionId": transaction_id,
                    "status": "not_found",
                    "verified": False,
                },
            )
            raise

        verified = transaction.is_verified
        logger.info(
            "payment_verification_result",
            transaction_id=transaction_id,
            status=transaction.status,
            verified=verified,
        )
        metrics.record_verification("verified" if verified else "unverified")
        self.tracker.emit(
            EventType.PAYMENT_VERIFICATION,
            {
                "transactionId": transaction_id,
                "status": transaction.status,
                "verified": verified,
                "packageId": transaction.package_id,
                "provider": transaction.provider,
            },
        )

        return VerificationResult(
            verified=verified,
            status=transaction.status,
            package_id=transaction.package_id,
            timestamp=transaction.updated_at,
        )
