"""
Pytest configuration and fixtures.
"""
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from payment_confirmation.api.main import create_app
from payment_confirmation.config import Settings
from payment_confirmation.core.event_tracker import EventTracker
from payment_confirmation.core.signature import SignatureVerifier
from payment_confirmation.core.transaction_store import TransactionStore
from payment_confirmation.core.verification import VerificationService
from payment_confirmation.core.webhook_ingestor import WebhookIngestor
from payment_confirmation.database.connection import build_engine, close_db, init_db

from tests.helpers import WEBHOOK_SECRET, RecordingSink


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings backed by a throwaway SQLite file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
        provider_webhook_secret=WEBHOOK_SECRET,
        app_name="payment-confirmation-test",
        app_env="test",
        app_base_url="https://app.example.com",
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, Any]:
    """Create the test engine with the schema provisioned."""
    engine = build_engine(test_settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest_asyncio.fixture
async def store(engine: AsyncEngine) -> AsyncGenerator[TransactionStore, Any]:
    store = TransactionStore(engine, timeout_seconds=5.0)
    yield store
    await store.close()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture
async def tracker(sink: RecordingSink) -> AsyncGenerator[EventTracker, Any]:
    tracker = EventTracker(sink, timeout_seconds=1.0)
    yield tracker
    await tracker.close()


@pytest.fixture
def verifier() -> SignatureVerifier:
    return SignatureVerifier(WEBHOOK_SECRET)


@pytest.fixture
def ingestor(
    store: TransactionStore, tracker: EventTracker, verifier: SignatureVerifier
) -> WebhookIngestor:
    return WebhookIngestor(store, tracker, verifier, provider="dana")


@pytest.fixture
def verification_service(store: TransactionStore, tracker: EventTracker) -> VerificationService:
    return VerificationService(store, tracker)


@pytest_asyncio.fixture
async def client(
    test_settings: Settings, store: TransactionStore, tracker: EventTracker
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client."""
    app = create_app(test_settings, store=store, tracker=tracker)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def payment_code_payload() -> Dict[str, Any]:
    """Payment code notification as the provider sends it."""
    return {
        "payment_code_id": "pc_1001",
        "payment_code": "8808123456",
        "status": "CREATED",
        "amount": "75000.00",
        "expiry_time": "2025-01-06T12:00:00+00:00",
        "metadata": {"userId": "user_42", "packageId": "premium"},
    }
