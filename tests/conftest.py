"""
Pytest configuration and fixtures for shop item tests.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from shop_system.application import PaymentTimeoutsProjection, ShopItems
from shop_system.config import Settings
from shop_system.infrastructure.event_store import (
    EventStore,
    InMemoryEventStorage,
    InMemoryEventStream,
)
from shop_system.infrastructure.repository import ShopItemRepository


@pytest.fixture
def item_id() -> UUID:
    return uuid4()


@pytest.fixture
def t0() -> datetime:
    """Purchase time used across scenarios."""
    return datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def price() -> Decimal:
    return Decimal("9.99")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_name="shop-system-test",
        app_env="test",
        log_level="DEBUG",
        log_json=False,
        hours_to_payment_timeout=24,
    )


@pytest.fixture
def event_stream() -> InMemoryEventStream:
    return InMemoryEventStream()


@pytest.fixture
def event_store(event_stream: InMemoryEventStream) -> EventStore:
    """Create event store for testing."""
    return EventStore(InMemoryEventStorage(), event_stream)


@pytest.fixture
def repository(event_store: EventStore) -> ShopItemRepository:
    return ShopItemRepository(event_store)


@pytest.fixture
def shop_items(repository: ShopItemRepository, test_settings: Settings) -> ShopItems:
    return ShopItems(repository, test_settings)


@pytest_asyncio.fixture
async def projection(event_stream: InMemoryEventStream) -> PaymentTimeoutsProjection:
    projection = PaymentTimeoutsProjection()
    await projection.attach(event_stream)
    return projection
