"""
Contact model for the customer directory.

Orders and quotes reference a contact by id; this core only reads contacts.
"""

import uuid
from typing import Optional

from sqlalchemy import Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bakery_orders.database.base import BaseModel


class Contact(BaseModel):
    """
    Customer contact owned by a business account.

    Attributes:
        user_id: Business account the contact belongs to
        first_name: Contact first name
        last_name: Contact last name
        email: Optional email address used for notifications
        phone: Optional phone number
        company: Optional company name
        notes: Free-text notes
    """

    __tablename__ = "contacts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
        comment="Owning business account",
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    company: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_contacts_user_last_name", "user_id", "last_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
