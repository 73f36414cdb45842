"""
Newsletter Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the suite.
How:   Every test that touches the store gets its own on-disk SQLite
       database under tmp_path (aiosqlite driver), so the real unique index
       is exercised and tests never share state.

Fixture Hierarchy:
    database ─▶ store ─▶ subscription_service / query_service
                    └──▶ notification_service ◀── fake_transport
    database + fake_transport ─▶ test_client (HTTPX AsyncClient)
    mock_store: AsyncMock store for pure state-machine tests
"""

import os

# Must run before anything imports newsletter.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SENDER_EMAIL"] = "news@example.com"
os.environ["SENDER_NAME"] = "Example News"
os.environ["FRONTEND_URL"] = "https://example.com"
os.environ["SMTP_HOST"] = "smtp.example.com"
os.environ["SMTP_USERNAME"] = "news@example.com"
os.environ["SMTP_PASSWORD"] = "not-a-real-password"
os.environ["NOTIFY_BATCH_SIZE"] = "0"

from typing import List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from newsletter.database import Database
from newsletter.exceptions import TransportError
from newsletter.services.notification_service import NotificationService
from newsletter.services.query_service import QueryService
from newsletter.services.subscriber_store import SubscriberStore
from newsletter.services.subscription_service import SubscriptionService
from newsletter.services.transport_base import EmailTransport, OutboundEmail


class FakeTransport(EmailTransport):
    """Records every message; raises TransportError when `fail` is set."""

    def __init__(self):
        self.sent: List[OutboundEmail] = []
        self.fail = False
        self.fail_after = None

    @property
    def is_configured(self) -> bool:
        return True

    async def send(self, message: OutboundEmail) -> str:
        if self.fail or (self.fail_after is not None and len(self.sent) >= self.fail_after):
            raise TransportError(context={"error_type": "FakeFailure"})
        self.sent.append(message)
        return f"<fake-{len(self.sent)}@example.com>"


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'newsletter.db'}", echo=False)
    await db.connect()
    await db.create_schema()
    yield db
    await db.dispose()


@pytest.fixture
def store(database):
    return SubscriberStore(database)


@pytest.fixture
def subscription_service(store):
    return SubscriptionService(store)


@pytest.fixture
def query_service(store):
    return QueryService(store)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def notification_service(store, fake_transport):
    return NotificationService(store, fake_transport)


@pytest.fixture
def mock_store():
    """
    AsyncMock standing in for SubscriberStore.

    Usage:
        mock_store.find_by_email.return_value = None
        mock_store.insert.side_effect = DuplicateKeyError("a@b.co")
    """
    store = AsyncMock(spec=SubscriberStore)
    store.find_by_email = AsyncMock(return_value=None)
    store.insert = AsyncMock()
    store.update_status = AsyncMock()
    return store


@pytest_asyncio.fixture
async def test_client(database, fake_transport):
    """HTTPX AsyncClient bound to an app wired to the test database."""
    from newsletter.main import create_app

    app = create_app(database=database, transport=fake_transport)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
