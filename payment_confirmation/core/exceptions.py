"""
Error taxonomy for payment confirmation.

Each error class carries the HTTP status the API layer answers with, so
routes translate failures without re-deciding their meaning.
"""


class PaymentConfirmationError(Exception):
    """Base exception for payment confirmation errors."""

    status_code = 500


class ValidationError(PaymentConfirmationError):
    """Raised when request input is missing or malformed (client fault)."""

    status_code = 400


class AuthenticityError(PaymentConfirmationError):
    """Raised when a webhook signature is missing or does not match."""

    status_code = 401


class NotFoundError(PaymentConfirmationError):
    """Raised when a transaction id is unknown to the store."""

    status_code = 404


class DependencyError(PaymentConfirmationError):
    """Raised when the store or another collaborator is unavailable. Retryable."""

    status_code = 500
