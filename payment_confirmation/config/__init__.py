"""Configuration package for the payment confirmation service."""
from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
