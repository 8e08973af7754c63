"""
Contact directory lookups.

The directory is owned elsewhere; this core only resolves contact ids.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bakery_orders.core.exceptions import ContactNotFoundError
from bakery_orders.core.logging import get_logger
from bakery_orders.database.models import Contact

logger = get_logger(__name__)


class ContactRepository:
    """Read-only access to the contact directory."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_contact(
        self, contact_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> Optional[Contact]:
        stmt = select(Contact).where(Contact.id == contact_id)
        if user_id is not None:
            stmt = stmt.where(Contact.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_contact(
        self, contact_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> Contact:
        """
        Resolve a contact that must exist.

        A contact of another business account than ``user_id`` is reported
        as missing.

        Raises:
            ContactNotFoundError: If the contact does not exist
        """
        contact = await self.find_contact(contact_id, user_id=user_id)
        if contact is None:
            logger.debug(
                "Contact not found",
                contact_id=str(contact_id),
                user_id=str(user_id) if user_id else None,
            )
            raise ContactNotFoundError("Contact not found", contact_id=contact_id)
        return contact
