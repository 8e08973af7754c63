"""
Pytest configuration and shared test fixtures.

Persistence-backed tests run against a fresh SQLite database file per test
through aiosqlite, so two sessions can race on the same rows.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bakery_orders.core.config import get_settings
from bakery_orders.database.base import Base
from bakery_orders.database.connection import create_engine, create_session_factory
from bakery_orders.database.models import Contact
from bakery_orders.services.orders.locking import AggregateLockProvider
from bakery_orders.services.orders.service import OrderService
from bakery_orders.services.pricing.engine import LineItemData


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on a temporary SQLite database with the full schema."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'bakery_orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def actor() -> uuid.UUID:
    """Acting business user."""
    return uuid.uuid4()


@pytest.fixture
async def contact(
    session_factory: async_sessionmaker[AsyncSession], actor: uuid.UUID
) -> Contact:
    """Customer contact stored in the directory."""
    async with session_factory() as session:
        contact = Contact(
            user_id=actor,
            first_name="Ada",
            last_name="Baker",
            email="ada@example.com",
            phone="555-0100",
        )
        session.add(contact)
        await session.commit()
        return contact


@pytest.fixture
def notification_sender() -> AsyncMock:
    sender = AsyncMock()
    sender.send = AsyncMock()
    return sender


@pytest.fixture
def order_service(
    db_session: AsyncSession, notification_sender: AsyncMock
) -> OrderService:
    """Order service on the test database with a private lock provider."""
    return OrderService(
        db_session,
        notification_sender=notification_sender,
        lock_provider=AggregateLockProvider(),
        settings=get_settings(),
    )


@pytest.fixture
def cake_items() -> list[LineItemData]:
    """Two cakes at 10.00: subtotal 20.00."""
    return [
        LineItemData(name="Vanilla cake", quantity=2, unit_price=Decimal("10.00")),
    ]
