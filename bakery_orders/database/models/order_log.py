"""
Order log model, the append-only audit trail of an order or quote.

Rows are only ever inserted. The integer primary key gives a stable
insertion sequence for entries sharing a timestamp.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bakery_orders.database.base import Base, utcnow
from bakery_orders.services.orders.enums import AuditAction


class OrderLog(Base):
    """
    One audit log entry.

    Attributes:
        id: Insertion sequence number
        order_id: Order or quote the entry belongs to
        action: AuditAction tag
        details: Human-readable details, e.g. "Draft -> Confirmed"
        actor: User who performed the action
        created_at: When the entry was written
    """

    __tablename__ = "order_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")

    actor: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("ix_order_logs_order_created", "order_id", "created_at", "id"),
    )

    @property
    def audit_action(self) -> AuditAction:
        return AuditAction(self.action)
