"""
Quote API endpoints.

Quote creation, listing, conversion to an order and the expiry sweep. Quote
details, status actions, notes, revisions and logs are served by the order
endpoints.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from bakery_orders.api.deps import CurrentActor, OrderServiceDep
from bakery_orders.api.v1.orders import order_response
from bakery_orders.core.exceptions import ValidationError
from bakery_orders.core.logging import get_logger
from bakery_orders.database.base import utcnow
from bakery_orders.schemas.orders import (
    ExpireQuotesResponse,
    OrderListResponse,
    OrderResponse,
    QuoteCreateRequest,
)
from bakery_orders.services.orders.enums import DocumentKind

logger = get_logger(__name__)

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new quote",
)
async def create_quote(
    request: QuoteCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    quote = await service.create_quote(actor, **request.service_kwargs())
    return order_response(service, quote)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List quotes",
)
async def list_quotes(
    actor: CurrentActor,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
) -> OrderListResponse:
    quotes, total = await service.list_orders(
        actor,
        kind=DocumentKind.QUOTE,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return OrderListResponse(
        items=[order_response(service, quote) for quote in quotes],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post(
    "/expire",
    response_model=ExpireQuotesResponse,
    summary="Expire overdue quotes",
)
async def expire_quotes(
    actor: CurrentActor,
    service: OrderServiceDep,
    today: Optional[date] = Query(
        None,
        description="Reference date, today by default; never in the future",
    ),
) -> ExpireQuotesResponse:
    """
    Expire the actor's sent quotes whose expiry date has passed.

    Raises:
        422 if the reference date is after today
    """
    if today is not None and today > utcnow().date():
        raise ValidationError(
            "Reference date cannot be in the future",
            today=today.isoformat(),
        )
    expired = await service.expire_due_quotes(actor, today=today, user_id=actor)
    return ExpireQuotesResponse(
        expired=[order_response(service, quote) for quote in expired],
        count=len(expired),
    )


@router.post(
    "/{quote_id}/convert",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Convert accepted quote to order",
)
async def convert_quote(
    quote_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Create a Draft order from an accepted quote.

    Raises:
        409 if the quote is not accepted or was already converted
    """
    logger.info("Converting quote", quote_id=str(quote_id))
    order = await service.convert_quote_to_order(quote_id, actor)
    return order_response(service, order)
