"""
Test suite for the append-only audit log.
"""

import uuid

import pytest

from bakery_orders.core.exceptions import OrderNotFoundError
from bakery_orders.services.orders.audit_log import AuditHistory, AuditLog
from bakery_orders.services.orders.enums import AuditAction


@pytest.fixture
async def order(order_service, actor, contact, cake_items):
    return await order_service.create_order(actor, contact.id, cake_items)


class TestAuditLog:
    """Test appending and reading audit entries."""

    @pytest.mark.asyncio
    async def test_append_to_missing_order_fails(self, db_session, actor):
        audit_log = AuditLog(db_session)

        with pytest.raises(OrderNotFoundError):
            await audit_log.append(uuid.uuid4(), AuditAction.NOTE_ADDED, "hello", actor)

    @pytest.mark.asyncio
    async def test_history_of_missing_order_fails(self, db_session):
        with pytest.raises(OrderNotFoundError):
            await AuditLog(db_session).history(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_append_returns_entry(self, db_session, order, actor):
        audit_log = AuditLog(db_session)

        entry = await audit_log.append(order.id, AuditAction.NOTE_ADDED, "Call back", actor)
        await db_session.commit()

        assert entry.id is not None
        assert entry.order_id == order.id
        assert entry.audit_action == AuditAction.NOTE_ADDED
        assert entry.actor == actor
        assert entry.created_at is not None

    @pytest.mark.asyncio
    async def test_history_is_ordered_oldest_first(self, db_session, order, actor):
        audit_log = AuditLog(db_session)
        for index in range(5):
            await audit_log.append(order.id, AuditAction.NOTE_ADDED, f"note {index}", actor)
        await db_session.commit()

        history = await audit_log.history(order.id)
        entries = await history.to_list()

        assert [entry.action for entry in entries][0] == AuditAction.CREATED.value
        assert [entry.details for entry in entries[1:]] == [f"note {i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_history_pages_through_all_entries(self, db_session, order, actor):
        audit_log = AuditLog(db_session)
        for index in range(6):
            await audit_log.append(order.id, AuditAction.NOTE_ADDED, f"note {index}", actor)
        await db_session.commit()

        history = await audit_log.history(order.id, page_size=2)
        entries = [entry async for entry in history]

        assert isinstance(history, AuditHistory)
        assert len(entries) == 7
        assert len({entry.id for entry in entries}) == 7

    @pytest.mark.asyncio
    async def test_history_is_restartable_and_sees_new_entries(
        self, db_session, order, actor
    ):
        audit_log = AuditLog(db_session)
        history = await audit_log.history(order.id)

        first = await history.to_list()
        await audit_log.append(order.id, AuditAction.NOTE_ADDED, "later", actor)
        await db_session.commit()
        second = await history.to_list()

        assert len(second) == len(first) + 1
        assert second[-1].details == "later"
