"""Database package for payment confirmation."""
from .connection import build_engine, close_db, init_db
from .models import TERMINAL_STATUSES, Base, Transaction, TransactionStatus

__all__ = [
    "Base",
    "Transaction",
    "TransactionStatus",
    "TERMINAL_STATUSES",
    "build_engine",
    "close_db",
    "init_db",
]
