"""
FastAPI dependencies for the acting user, database sessions and services.

The acting user is taken from the ``X-Actor-Id`` header set by the
authenticating gateway in front of this service.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from bakery_orders.core.logging import get_logger, set_actor_id
from bakery_orders.database.connection import get_db
from bakery_orders.services.orders.service import OrderService
from bakery_orders.services.payments.provider import ManualPaymentProvider, PaymentProvider

logger = get_logger(__name__)


async def get_current_actor(
    x_actor_id: Annotated[Optional[str], Header()] = None,
) -> UUID:
    """
    Resolve the acting user from the request.

    Returns:
        UUID: Acting user id

    Raises:
        HTTPException: 401 if the header is missing or not a UUID
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing or invalid X-Actor-Id header",
    )

    if not x_actor_id:
        logger.warning("Authentication failed: No actor provided")
        raise credentials_exception

    try:
        actor = UUID(x_actor_id)
    except ValueError:
        logger.warning(
            "Authentication failed: Invalid actor ID format",
            actor_id=x_actor_id,
        )
        raise credentials_exception

    set_actor_id(str(actor))
    return actor


async def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderService:
    """Order service bound to the request's session."""
    return OrderService(db)


async def get_payment_provider() -> PaymentProvider:
    """Provider used to charge payments taken through the API."""
    return ManualPaymentProvider()


CurrentActor = Annotated[UUID, Depends(get_current_actor)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
PaymentProviderDep = Annotated[PaymentProvider, Depends(get_payment_provider)]
