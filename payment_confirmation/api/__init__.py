"""HTTP API for payment confirmation."""
from .main import create_app

__all__ = ["create_app"]
