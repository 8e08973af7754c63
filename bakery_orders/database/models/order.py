"""
Order/quote aggregate model with line items.

Orders and quotes share one table distinguished by ``kind``. The aggregate
owns its line items and payments; totals are always derived through the
pricing engine and never stored. A ``version`` column gives optimistic
concurrency: any UPDATE of a stale row raises ``StaleDataError`` on flush.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bakery_orders.database.base import Base, BaseModel
from bakery_orders.services.orders.enums import (
    DeliveryType,
    DocumentKind,
    EventType,
    OrderStatus,
    QuoteStatus,
    Status,
    parse_status,
)
from bakery_orders.services.pricing.engine import DiscountType, Totals, compute_totals

if TYPE_CHECKING:
    from bakery_orders.database.models.payment import Payment


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def _status_check() -> str:
    order_values = ", ".join(f"'{s.value}'" for s in OrderStatus)
    quote_values = ", ".join(f"'{s.value}'" for s in QuoteStatus)
    return (
        f"(kind = 'order' AND status IN ({order_values})) OR "
        f"(kind = 'quote' AND status IN ({quote_values}))"
    )


class Order(BaseModel):
    """
    Order or quote aggregate.

    Attributes:
        id: Unique identifier (UUID)
        kind: ``order`` or ``quote``
        number: Human-readable reference, e.g. ORD-20240101-1A2B3C
        user_id: Business account that owns the aggregate
        contact_id: Customer contact (reference, not owned)
        status: Current status, an OrderStatus or QuoteStatus by kind
        event_type: Occasion the order is for
        event_date: Date of the event
        theme: Optional cake theme
        delivery_type: Pickup or Delivery
        delivery_details: Free-text delivery address or instructions
        discount: Discount value, percentage or fixed amount by discount_type
        discount_type: percent or fixed
        setup_fee: Flat setup fee
        delivery_fee: Flat delivery fee
        tax_rate: Tax percentage in [0, 100]
        notes: Optional notes
        job_sheet_notes: Production instructions for the kitchen job sheet
        expiry_date: Quotes only, date after which the quote may be expired
        source_quote_id: Orders only, the quote this order was converted from
        version: Optimistic concurrency counter
        items: Ordered line items
        payments: Recorded payments
    """

    __tablename__ = "orders"

    kind: Mapped[DocumentKind] = mapped_column(
        SQLEnum(
            DocumentKind,
            name="document_kind",
            native_enum=False,
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        index=True,
        comment="order or quote",
    )

    number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Human-readable order or quote number",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
        comment="Owning business account",
    )

    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Customer contact",
    )

    status_value: Mapped[str] = mapped_column(
        "status",
        String(20),
        nullable=False,
        comment="Current status, member of the status set for kind",
    )

    event_type: Mapped[EventType] = mapped_column(
        SQLEnum(
            EventType,
            name="event_type",
            native_enum=False,
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=EventType.OTHER,
    )

    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    theme: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    delivery_type: Mapped[DeliveryType] = mapped_column(
        SQLEnum(
            DeliveryType,
            name="delivery_type",
            native_enum=False,
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=DeliveryType.PICKUP,
    )

    delivery_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing terms; totals are derived from these, the items and the payments.
    # Scales match the pricing engine's storable precision.
    discount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0"),
    )

    discount_type: Mapped[DiscountType] = mapped_column(
        SQLEnum(
            DiscountType,
            name="discount_type",
            native_enum=False,
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=DiscountType.PERCENT,
    )

    setup_fee: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0"),
    )

    delivery_fee: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0"),
    )

    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4),
        nullable=False,
        default=Decimal("0"),
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    job_sheet_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    source_quote_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        comment="Quote this order was converted from",
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    payments: Mapped[list["Payment"]] = relationship(
        "Payment",
        back_populates="order",
        lazy="selectin",
        cascade="save-update, merge",
        order_by="Payment.recorded_at",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_orders_user_kind_status", "user_id", "kind", "status"),
        Index("ix_orders_kind_expiry", "kind", "expiry_date"),
        CheckConstraint(_status_check(), name="ck_orders_status_matches_kind"),
        CheckConstraint("discount >= 0", name="ck_orders_discount_non_negative"),
        CheckConstraint(
            "discount_type <> 'percent' OR discount <= 100",
            name="ck_orders_percent_discount_max",
        ),
        CheckConstraint("setup_fee >= 0", name="ck_orders_setup_fee_non_negative"),
        CheckConstraint("delivery_fee >= 0", name="ck_orders_delivery_fee_non_negative"),
        CheckConstraint(
            "tax_rate >= 0 AND tax_rate <= 100",
            name="ck_orders_tax_rate_range",
        ),
    )

    @property
    def status(self) -> Status:
        """Current status as the enum matching ``kind``."""
        return parse_status(self.kind, self.status_value)

    @status.setter
    def status(self, value: Status) -> None:
        self.status_value = parse_status(self.kind, value).value

    @property
    def is_quote(self) -> bool:
        return self.kind == DocumentKind.QUOTE

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    @property
    def totals(self) -> Totals:
        """Totals derived from the current items, terms and payments."""
        return compute_totals(
            self.items,
            discount=self.discount,
            discount_type=self.discount_type,
            setup_fee=self.setup_fee,
            delivery_fee=self.delivery_fee,
            tax_rate=self.tax_rate,
            payments=self.payments,
        )


class OrderItem(Base):
    """
    Line item owned by one order or quote.

    Attributes:
        id: Unique identifier
        order_id: Owning order or quote
        position: Zero-based position within the parent
        product_id: Optional product catalog reference
        item_type: Free-text category, e.g. Cake or Cupcakes
        name: Item name
        description: Optional description
        notes: Optional decorating or packing notes
        quantity: Units, at least 1
        unit_price: Price per unit, non-negative
    """

    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Product catalog reference, not validated here",
    )

    item_type: Mapped[str] = mapped_column(
        "type",
        String(50),
        nullable=False,
        default="Product",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
    )

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price
