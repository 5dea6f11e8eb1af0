"""
Payment Confirmation Service

Confirmation-side reconciliation for checkout payments:
1. Provider webhooks are authenticated, normalised and applied to the
   transaction store with idempotent, monotonic status transitions
2. Clients poll a verification endpoint after being redirected back
3. Every outcome is mirrored to an analytics sink without blocking requests
"""

__version__ = "1.0.0"
