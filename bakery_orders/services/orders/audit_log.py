"""
Append-only audit log for orders and quotes.

Entries are written as a side effect of state-changing operations and are
never updated or deleted through this interface. ``history`` reads them back
oldest first.
"""

import uuid
from typing import AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bakery_orders.core.exceptions import OrderNotFoundError
from bakery_orders.core.logging import get_logger
from bakery_orders.database.base import utcnow
from bakery_orders.database.models import Order, OrderLog
from bakery_orders.services.orders.enums import AuditAction

logger = get_logger(__name__)


class AuditHistory:
    """
    Lazy, restartable view of one order's audit entries.

    Nothing is read until iteration starts; each ``async for`` runs a fresh
    query, so a later iteration also sees entries appended in between.
    Entries are fetched in pages ordered by ``created_at`` then insertion
    sequence.
    """

    def __init__(self, session: AsyncSession, order_id: uuid.UUID, page_size: int = 100):
        self.session = session
        self.order_id = order_id
        self.page_size = page_size

    def __aiter__(self) -> AsyncIterator[OrderLog]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[OrderLog]:
        offset = 0
        while True:
            stmt = (
                select(OrderLog)
                .where(OrderLog.order_id == self.order_id)
                .order_by(OrderLog.created_at.asc(), OrderLog.id.asc())
                .offset(offset)
                .limit(self.page_size)
            )
            result = await self.session.execute(stmt)
            page = result.scalars().all()
            for entry in page:
                yield entry
            if len(page) < self.page_size:
                return
            offset += self.page_size

    async def to_list(self) -> list[OrderLog]:
        return [entry async for entry in self]


class AuditLog:
    """Writes and reads audit entries within the caller's session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        order: Order,
        action: AuditAction,
        details: str,
        actor: uuid.UUID,
    ) -> OrderLog:
        """
        Stage an entry for an order already loaded in this session.

        The entry is flushed together with the order's own changes, so both
        commit or roll back as one.
        """
        entry = OrderLog(
            order_id=order.id,
            action=action.value,
            details=details,
            actor=actor,
            created_at=utcnow(),
        )
        self.session.add(entry)

        logger.debug(
            "Audit entry recorded",
            order_id=str(order.id),
            action=action.value,
            details=details,
        )

        return entry

    async def append(
        self,
        order_id: uuid.UUID,
        action: AuditAction,
        details: str,
        actor: uuid.UUID,
    ) -> OrderLog:
        """
        Append an entry by order id.

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        await self._ensure_order_exists(order_id)

        entry = OrderLog(
            order_id=order_id,
            action=action.value,
            details=details,
            actor=actor,
            created_at=utcnow(),
        )
        self.session.add(entry)
        await self.session.flush()

        logger.info(
            "Audit entry appended",
            order_id=str(order_id),
            action=action.value,
        )

        return entry

    async def history(
        self, order_id: uuid.UUID, page_size: Optional[int] = None
    ) -> AuditHistory:
        """
        Get the audit history of an order, oldest entry first.

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        await self._ensure_order_exists(order_id)
        if page_size is None:
            return AuditHistory(self.session, order_id)
        return AuditHistory(self.session, order_id, page_size=page_size)

    async def _ensure_order_exists(self, order_id: uuid.UUID) -> None:
        found = await self.session.scalar(select(Order.id).where(Order.id == order_id))
        if found is None:
            raise OrderNotFoundError("Order not found", order_id=order_id)
