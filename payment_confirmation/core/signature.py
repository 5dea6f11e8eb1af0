"""
Webhook signature verification.

The provider signs the raw request body with HMAC-SHA256 using the shared
secret and sends the hex digest in a header. Verification runs before the
body is parsed.
"""
import hashlib
import hmac
from typing import Optional

import structlog

from payment_confirmation.core.exceptions import AuthenticityError

logger = structlog.get_logger(__name__)


def compute_signature(payload: bytes, secret: str) -> str:
    """
    Compute the hex HMAC-SHA256 signature of a payload.

    Args:
        payload: Raw request body
        secret: Shared webhook secret

    Returns:
        str: Lowercase hex digest
    """
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class SignatureVerifier:
    """Checks webhook bodies against the provider's HMAC signature."""

    def __init__(self, secret: str, header_name: str = "X-SIGNATURE") -> None:
        self._secret = secret
        self.header_name = header_name

    def verify(self, payload: bytes, signature: Optional[str]) -> None:
        """
        Verify a webhook signature.

        Args:
            payload: Raw request body as bytes
            signature: Header value sent by the provider

        Raises:
            AuthenticityError: If the signature is missing or does not match
        """
        if not signature:
            logger.warning("webhook_signature_missing", header=self.header_name)
            raise AuthenticityError("Missing signature")

        expected = compute_signature(payload, self._secret).encode()
        # Headers arrive latin-1 decoded; compare bytes so non-ASCII input is a mismatch
        received = signature.strip().lower().encode("utf-8", "surrogateescape")
        if not hmac.compare_digest(expected, received):
            logger.warning("webhook_signature_mismatch", header=self.header_name)
            raise AuthenticityError("Invalid signature")
