"""
Payment model for amounts recorded against an order.

Payments are created only through the order aggregate; the sum of an
order's payments is its ``amount_paid``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bakery_orders.database.base import Base, utcnow

if TYPE_CHECKING:
    from bakery_orders.database.models.order import Order


class Payment(Base):
    """
    Payment recorded against an order.

    Attributes:
        id: Unique identifier
        order_id: Order the payment belongs to
        amount: Amount paid, strictly positive
        method: Payment method label, e.g. cash, card, bank_transfer
        provider_reference: Reference returned by the payment provider
        recorded_at: When the payment was recorded
        recorded_by: Actor who recorded it
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
    )

    method: Mapped[str] = mapped_column(String(50), nullable=False)

    provider_reference: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Payment provider transaction reference",
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    recorded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
