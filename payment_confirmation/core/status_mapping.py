"""
Provider status vocabulary.

Raw provider statuses are translated through an explicit table. Values
outside the table map to nothing, so new provider statuses fail closed.
"""
from enum import Enum
from typing import Dict, Optional

from payment_confirmation.database.models import TransactionStatus


class ProviderStatus(str, Enum):
    """Status strings sent by the payment provider."""

    CREATED = "CREATED"
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    PAID = "PAID"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


PROVIDER_STATUS_MAP: Dict[ProviderStatus, TransactionStatus] = {
    ProviderStatus.CREATED: TransactionStatus.PENDING,
    ProviderStatus.PENDING: TransactionStatus.PENDING,
    ProviderStatus.PROCESSING: TransactionStatus.PENDING,
    ProviderStatus.SUCCESS: TransactionStatus.COMPLETED,
    ProviderStatus.PAID: TransactionStatus.COMPLETED,
    ProviderStatus.COMPLETED: TransactionStatus.COMPLETED,
    ProviderStatus.FAILED: TransactionStatus.FAILED,
    ProviderStatus.CANCELLED: TransactionStatus.FAILED,
    ProviderStatus.CLOSED: TransactionStatus.FAILED,
    ProviderStatus.EXPIRED: TransactionStatus.EXPIRED,
}

# Payment-code notifications only act on codes that were issued or paid
ACCEPTED_PAYMENT_CODE_STATUSES = frozenset(
    {ProviderStatus.CREATED, ProviderStatus.SUCCESS, ProviderStatus.PAID}
)


def parse_provider_status(raw: Optional[str]) -> Optional[ProviderStatus]:
    """
    Parse a raw provider status, case-insensitively.

    Args:
        raw: Status string from the webhook payload

    Returns:
        Optional[ProviderStatus]: Parsed status, or None if unknown
    """
    if not isinstance(raw, str):
        return None
    try:
        return ProviderStatus(raw.strip().upper())
    except ValueError:
        return None


def map_provider_status(raw: Optional[str]) -> Optional[TransactionStatus]:
    """Translate a raw provider status into a transaction status."""
    provider_status = parse_provider_status(raw)
    if provider_status is None:
        return None
    return PROVIDER_STATUS_MAP[provider_status]
