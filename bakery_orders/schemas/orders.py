"""
Order and quote Pydantic schemas for API request/response validation.

Request schemas check shape and types only; range rules (quantities, prices,
discounts, fees, tax) are enforced by the pricing engine so the API and
direct service callers get the same errors.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bakery_orders.core.config import get_settings
from bakery_orders.services.orders.enums import (
    DeliveryType,
    DocumentKind,
    EventType,
    StatusAction,
)
from bakery_orders.services.pricing.engine import DiscountType, LineItemData, Totals


class LineItemRequest(BaseModel):
    """Line item of an order or quote."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=255, description="Item name")
    description: Optional[str] = Field(None, description="Item description")
    quantity: int = Field(..., description="Number of units, at least 1")
    unit_price: Decimal = Field(..., description="Price per unit, non-negative")
    product_id: Optional[UUID] = Field(None, description="Product catalog reference")
    item_type: str = Field(
        "Product",
        min_length=1,
        max_length=50,
        alias="type",
        description="Item category, e.g. Cake or Cupcakes",
    )
    notes: Optional[str] = Field(None, description="Decorating or packing notes")

    def to_data(self) -> LineItemData:
        return LineItemData(
            name=self.name,
            quantity=self.quantity,
            unit_price=self.unit_price,
            description=self.description,
            product_id=self.product_id,
            item_type=self.item_type,
            notes=self.notes,
        )


class PricingTermsMixin(BaseModel):
    """Order-level pricing terms."""

    discount: Decimal = Field(Decimal("0"), description="Discount value")
    discount_type: DiscountType = Field(
        DiscountType.PERCENT,
        description="percent or fixed",
    )
    setup_fee: Decimal = Field(Decimal("0"), description="Flat setup fee")
    delivery_fee: Decimal = Field(Decimal("0"), description="Flat delivery fee")
    tax_rate: Optional[Decimal] = Field(
        None,
        description="Tax percentage; the configured default when omitted",
    )


class OrderCreateRequest(PricingTermsMixin):
    """Request to create an order."""

    model_config = ConfigDict(str_strip_whitespace=True)

    contact_id: UUID = Field(..., description="Customer contact")
    items: list[LineItemRequest] = Field(default_factory=list, description="Line items")
    event_type: EventType = Field(EventType.OTHER, description="Occasion")
    event_date: Optional[date] = Field(None, description="Date of the event")
    theme: Optional[str] = Field(None, max_length=255, description="Cake theme")
    delivery_type: DeliveryType = Field(DeliveryType.PICKUP, description="Pickup or Delivery")
    delivery_details: Optional[str] = Field(
        None,
        description="Delivery address or pickup instructions",
    )
    notes: Optional[str] = Field(None, description="Order notes")
    job_sheet_notes: Optional[str] = Field(None, description="Production notes for the job sheet")

    def service_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the service create call."""
        return {
            "contact_id": self.contact_id,
            "items": [item.to_data() for item in self.items],
            "event_type": self.event_type,
            "event_date": self.event_date,
            "theme": self.theme,
            "delivery_type": self.delivery_type,
            "delivery_details": self.delivery_details,
            "discount": self.discount,
            "discount_type": self.discount_type,
            "setup_fee": self.setup_fee,
            "delivery_fee": self.delivery_fee,
            "tax_rate": self.tax_rate,
            "notes": self.notes,
            "job_sheet_notes": self.job_sheet_notes,
        }


class QuoteCreateRequest(OrderCreateRequest):
    """Request to create a quote."""

    expiry_date: Optional[date] = Field(
        None,
        description="Date after which the quote expires; default from settings",
    )

    def service_kwargs(self) -> dict[str, Any]:
        kwargs = super().service_kwargs()
        kwargs["expiry_date"] = self.expiry_date
        return kwargs


class StatusChangeRequest(BaseModel):
    """Request to apply a status action."""

    action: StatusAction = Field(..., description="Status action to apply")


class PaymentCreateRequest(BaseModel):
    """Request to record a payment."""

    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., description="Amount paid, greater than zero")
    method: str = Field(..., min_length=1, max_length=50, description="Payment method")
    provider_reference: Optional[str] = Field(
        None,
        max_length=255,
        description="Reference of an externally processed payment",
    )


class NoteCreateRequest(BaseModel):
    """Request to add a note to an order's history."""

    model_config = ConfigDict(str_strip_whitespace=True)

    note: str = Field(..., min_length=1, description="Note text")


class ItemsReviseRequest(BaseModel):
    """Request to revise items and/or pricing terms; omitted fields are kept."""

    items: Optional[list[LineItemRequest]] = None
    discount: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    setup_fee: Optional[Decimal] = None
    delivery_fee: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None

    @model_validator(mode="after")
    def validate_not_empty(self) -> "ItemsReviseRequest":
        """Require at least one field to revise."""
        if all(getattr(self, name) is None for name in type(self).model_fields):
            raise ValueError("At least one of items or pricing terms must be given")
        return self

    def service_kwargs(self) -> dict[str, Any]:
        return {
            "items": [item.to_data() for item in self.items] if self.items is not None else None,
            "discount": self.discount,
            "discount_type": self.discount_type,
            "setup_fee": self.setup_fee,
            "delivery_fee": self.delivery_fee,
            "tax_rate": self.tax_rate,
        }


class TotalsResponse(BaseModel):
    """Derived totals of an order or quote."""

    subtotal: Decimal
    discount_amount: Decimal
    taxable_base: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    outstanding: Decimal

    @classmethod
    def from_totals(cls, totals: Totals) -> "TotalsResponse":
        return cls(**totals.to_dict())


class LineItemResponse(BaseModel):
    """Line item in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    product_id: Optional[UUID] = None
    item_type: str = Field(serialization_alias="type")
    name: str
    description: Optional[str] = None
    notes: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class PaymentResponse(BaseModel):
    """Recorded payment in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    method: str
    provider_reference: Optional[str] = None
    recorded_at: datetime
    recorded_by: UUID


class OrderResponse(BaseModel):
    """Complete order or quote response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: DocumentKind
    number: str
    user_id: UUID
    contact_id: UUID
    status: str
    event_type: EventType
    event_date: Optional[date] = None
    theme: Optional[str] = None
    delivery_type: DeliveryType
    delivery_details: Optional[str] = None
    discount: Decimal
    discount_type: DiscountType
    setup_fee: Decimal
    delivery_fee: Decimal
    tax_rate: Decimal
    notes: Optional[str] = None
    job_sheet_notes: Optional[str] = None
    expiry_date: Optional[date] = None
    source_quote_id: Optional[UUID] = None
    version: int
    currency: str
    items: list[LineItemResponse]
    payments: list[PaymentResponse]
    totals: TotalsResponse
    allowed_actions: list[StatusAction]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Any, allowed_actions: Any = ()) -> "OrderResponse":
        return cls(
            id=order.id,
            kind=order.kind,
            number=order.number,
            user_id=order.user_id,
            contact_id=order.contact_id,
            status=order.status.value,
            event_type=order.event_type,
            event_date=order.event_date,
            theme=order.theme,
            delivery_type=order.delivery_type,
            delivery_details=order.delivery_details,
            discount=order.discount,
            discount_type=order.discount_type,
            setup_fee=order.setup_fee,
            delivery_fee=order.delivery_fee,
            tax_rate=order.tax_rate,
            notes=order.notes,
            job_sheet_notes=order.job_sheet_notes,
            expiry_date=order.expiry_date,
            source_quote_id=order.source_quote_id,
            version=order.version,
            currency=get_settings().currency,
            items=[LineItemResponse.model_validate(item) for item in order.items],
            payments=[PaymentResponse.model_validate(p) for p in order.payments],
            totals=TotalsResponse.from_totals(order.totals),
            allowed_actions=sorted(allowed_actions, key=lambda a: a.value),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    """Paginated order list."""

    items: list[OrderResponse]
    total: int
    skip: int
    limit: int


class AuditLogEntryResponse(BaseModel):
    """Audit log entry in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: UUID
    action: str
    details: str
    actor: UUID
    created_at: datetime


class ExpireQuotesResponse(BaseModel):
    """Result of an expiry sweep."""

    expired: list[OrderResponse]
    count: int
