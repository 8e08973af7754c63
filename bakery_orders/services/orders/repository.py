"""
Order/quote data access repository with optimistic concurrency.

This module implements the OrderRepository class: loading aggregates with
their items and payments, saving them under the ``version`` check, and the
list/lookup queries used by the service. A stale write surfaces as
``ConflictError`` so callers can re-read and retry.
"""

import uuid
from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from bakery_orders.core.exceptions import (
    BakeryOrdersError,
    ConflictError,
    OrderNotFoundError,
)
from bakery_orders.core.logging import get_logger
from bakery_orders.database.models import Order
from bakery_orders.services.orders.enums import DocumentKind, QuoteStatus, Status

logger = get_logger(__name__)


class OrderRepositoryError(BakeryOrdersError):
    """Raised when the database fails for reasons other than a version race."""

    error_code = "order_repository_error"
    http_status = 500


class OrderRepository:
    """
    Repository for order and quote aggregates.

    Works inside the caller's session; the service owns commit and rollback.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, order_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> Optional[Order]:
        """
        Get an order or quote by ID, reloading any stale in-session copy.

        Args:
            order_id: Order or quote ID
            user_id: Owning business account; another account's order is
                treated as missing

        Returns:
            Order if found, None otherwise

        Raises:
            OrderRepositoryError: If the query fails
        """
        conditions: list[Any] = [Order.id == order_id]
        if user_id is not None:
            conditions.append(Order.user_id == user_id)

        try:
            stmt = (
                select(Order)
                .where(and_(*conditions))
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=order_id,
                error=str(e),
            ) from e

    async def load(
        self, order_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> Order:
        """
        Load an order or quote that must exist.

        Raises:
            OrderNotFoundError: If no aggregate has this ID, or it belongs to
                another account than ``user_id``
        """
        order = await self.get(order_id, user_id=user_id)
        if order is None:
            logger.debug(
                "Order not found",
                order_id=str(order_id),
                user_id=str(user_id) if user_id else None,
            )
            raise OrderNotFoundError("Order not found", order_id=order_id)
        return order

    async def add(self, order: Order) -> Order:
        """
        Stage a new aggregate and flush it.

        Raises:
            OrderRepositoryError: If the insert violates a constraint
        """
        try:
            self.session.add(order)
            await self.session.flush()

            logger.info(
                "Order inserted",
                order_id=str(order.id),
                kind=order.kind.value,
                number=order.number,
                item_count=len(order.items),
            )

            return order

        except IntegrityError as e:
            logger.error(
                "Order insert failed - integrity error",
                number=order.number,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Order insert failed due to data integrity violation",
                number=order.number,
                error=str(e),
            ) from e

    async def save(self, order: Order) -> Order:
        """
        Flush pending changes to an aggregate under the version check.

        Raises:
            ConflictError: If another writer updated the aggregate first
            OrderRepositoryError: If the flush fails otherwise
        """
        try:
            await self.session.flush()

            logger.debug(
                "Order saved",
                order_id=str(order.id),
                version=order.version,
            )

            return order

        except StaleDataError as e:
            logger.warning(
                "Order version conflict",
                order_id=str(order.id),
            )
            raise ConflictError(
                "Order was modified concurrently",
                order_id=order.id,
            ) from e
        except IntegrityError as e:
            logger.error(
                "Order save failed - integrity error",
                order_id=str(order.id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Order save failed due to data integrity violation",
                order_id=order.id,
                error=str(e),
            ) from e

    async def list_orders(
        self,
        user_id: uuid.UUID,
        kind: Optional[DocumentKind] = None,
        status: Optional[Status] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List a business account's orders and quotes, newest first.

        Returns:
            Tuple of (orders, total_count)
        """
        conditions: list[Any] = [Order.user_id == user_id]
        if kind is not None:
            conditions.append(Order.kind == kind)
        if status is not None:
            conditions.append(Order.status_value == status.value)

        try:
            stmt = (
                select(Order)
                .where(and_(*conditions))
                .order_by(Order.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            orders = result.scalars().all()

            count_stmt = select(func.count()).select_from(Order).where(and_(*conditions))
            total = await self.session.scalar(count_stmt)

            logger.debug(
                "Orders listed",
                user_id=str(user_id),
                kind=kind.value if kind else None,
                count=len(orders),
                total=total,
            )

            return orders, total or 0

        except SQLAlchemyError as e:
            logger.error(
                "Failed to list orders",
                user_id=str(user_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to list orders",
                user_id=user_id,
                error=str(e),
            ) from e

    async def find_conversion(self, quote_id: uuid.UUID) -> Optional[Order]:
        """Get the order converted from ``quote_id``, if any."""
        stmt = select(Order).where(Order.source_quote_id == quote_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_expired_quote_ids(
        self, today: date, user_id: Optional[uuid.UUID] = None
    ) -> list[uuid.UUID]:
        """IDs of sent quotes whose expiry date is before ``today``."""
        conditions: list[Any] = [
            Order.kind == DocumentKind.QUOTE,
            Order.status_value == QuoteStatus.SENT.value,
            Order.expiry_date.is_not(None),
            Order.expiry_date < today,
        ]
        if user_id is not None:
            conditions.append(Order.user_id == user_id)

        result = await self.session.execute(
            select(Order.id).where(and_(*conditions)).order_by(Order.expiry_date)
        )
        return list(result.scalars().all())
