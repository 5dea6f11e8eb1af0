"""Core payment confirmation logic."""
from .event_tracker import EventTracker, EventType, HttpEventSink, LogEventSink
from .exceptions import (
    AuthenticityError,
    DependencyError,
    NotFoundError,
    PaymentConfirmationError,
    ValidationError,
)
from .signature import SignatureVerifier
from .transaction_store import TransactionStore, UpsertResult
from .verification import VerificationResult, VerificationService
from .webhook_ingestor import IngestionResult, WebhookIngestor

__all__ = [
    "AuthenticityError",
    "DependencyError",
    "EventTracker",
    "EventType",
    "HttpEventSink",
    "IngestionResult",
    "LogEventSink",
    "NotFoundError",
    "PaymentConfirmationError",
    "SignatureVerifier",
    "TransactionStore",
    "UpsertResult",
    "ValidationError",
    "VerificationResult",
    "VerificationService",
    "WebhookIngestor",
]
