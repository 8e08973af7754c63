"""
Order management API endpoints.

This module implements the FastAPI router for the order lifecycle: creation,
listing, status actions, payments, notes, revisions, totals and the audit
log. The detail, status, note, revision and log endpoints also serve quotes,
since orders and quotes are one aggregate. Service errors propagate to the
application's error handler, which maps them to HTTP responses.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from bakery_orders.api.deps import CurrentActor, OrderServiceDep, PaymentProviderDep
from bakery_orders.core.logging import get_logger
from bakery_orders.schemas.orders import (
    AuditLogEntryResponse,
    ItemsReviseRequest,
    NoteCreateRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    PaymentCreateRequest,
    StatusChangeRequest,
    TotalsResponse,
)
from bakery_orders.services.orders.enums import DocumentKind
from bakery_orders.services.payments.service import PaymentCollector

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def order_response(service, order) -> OrderResponse:
    return OrderResponse.from_order(order, service.state_machine.get_allowed_actions(order))


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new order",
)
async def create_order(
    request: OrderCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Create a new order in Draft.

    Raises:
        404 if the contact does not exist, 422 if items or pricing terms are
        out of range
    """
    order = await service.create_order(actor, **request.service_kwargs())
    return order_response(service, order)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
)
async def list_orders(
    actor: CurrentActor,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
) -> OrderListResponse:
    """List the actor's orders, newest first."""
    orders, total = await service.list_orders(
        actor,
        kind=DocumentKind.ORDER,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return OrderListResponse(
        items=[order_response(service, order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order or quote",
)
async def get_order(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.get(order_id, actor)
    return order_response(service, order)


@router.get(
    "/{order_id}/totals",
    response_model=TotalsResponse,
    summary="Get derived totals",
)
async def get_order_totals(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> TotalsResponse:
    totals = await service.get_totals(order_id, actor)
    return TotalsResponse.from_totals(totals)


@router.post(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Apply status action",
)
async def change_order_status(
    order_id: UUID,
    request: StatusChangeRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Apply a status action such as confirm, mark_paid or cancel.

    Raises:
        409 if the action is not allowed from the current status or the
        order is not fully paid
    """
    logger.info(
        "Status action requested",
        order_id=str(order_id),
        action=request.action.value,
    )
    order = await service.change_status(order_id, request.action, actor)
    return order_response(service, order)


@router.post(
    "/{order_id}/payments",
    response_model=TotalsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment",
)
async def record_payment(
    order_id: UUID,
    request: PaymentCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
    provider: PaymentProviderDep,
) -> TotalsResponse:
    """
    Record a payment and return the updated totals.

    Payments that carry a provider reference were already processed and are
    recorded as is; others are charged through the payment provider first.

    Raises:
        402 if the charge was declined, 422 if the amount is not positive or
        the order cannot take payments, 502 if the provider failed
    """
    if request.provider_reference:
        totals = await service.add_payment(
            order_id,
            request.amount,
            request.method,
            actor,
            provider_reference=request.provider_reference,
        )
    else:
        collector = PaymentCollector(service, provider)
        totals = await collector.collect(order_id, request.amount, request.method, actor)
    return TotalsResponse.from_totals(totals)


@router.post(
    "/{order_id}/notes",
    response_model=AuditLogEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add note",
)
async def add_order_note(
    order_id: UUID,
    request: NoteCreateRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> AuditLogEntryResponse:
    entry = await service.add_note(order_id, request.note, actor)
    return AuditLogEntryResponse.model_validate(entry)


@router.put(
    "/{order_id}/items",
    response_model=OrderResponse,
    summary="Revise items and pricing terms",
)
async def revise_order(
    order_id: UUID,
    request: ItemsReviseRequest,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Replace items and/or pricing terms while the order is not terminal.

    Raises:
        409 if the order or quote is in a terminal status
    """
    order = await service.revise(order_id, actor, **request.service_kwargs())
    return order_response(service, order)


@router.get(
    "/{order_id}/logs",
    response_model=list[AuditLogEntryResponse],
    summary="Get audit log",
)
async def get_order_logs(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> list[AuditLogEntryResponse]:
    """Audit history, oldest entry first."""
    history = await service.history(order_id, actor)
    return [AuditLogEntryResponse.model_validate(entry) async for entry in history]
