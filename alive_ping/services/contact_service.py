"""
Emergency contact management.

Phone numbers are unique per user. Marking a contact primary clears the
flag on the user's other contacts; primary only changes notification
order, every contact is notified on escalation.
"""

from alive_ping.models.domain.checkin_domain import Contact
from alive_ping.services.errors import ContactNotFound, DuplicateContact


class ContactService:
    def __init__(self, contacts):
        self._contacts = contacts

    async def list_contacts(self, user_id: int) -> list[Contact]:
        return await self._contacts.list_for_user(user_id)

    async def add_contact(self, user_id: int, name: str, phone: str, is_primary: bool = False) -> Contact:
        if await self._contacts.find_by_phone(user_id, phone):
            raise DuplicateContact(phone)
        return await self._contacts.create(user_id, name, phone, is_primary)

    async def update_contact(
        self,
        user_id: int,
        contact_id: int,
        *,
        name: str | None = None,
        phone: str | None = None,
        is_primary: bool | None = None,
    ) -> Contact:
        existing = await self._contacts.get(user_id, contact_id)
        if not existing:
            raise ContactNotFound(contact_id)

        if phone and phone != existing.phone:
            if await self._contacts.find_by_phone(user_id, phone, exclude_id=contact_id):
                raise DuplicateContact(phone)

        updated = await self._contacts.update(
            user_id, contact_id, name=name, phone=phone, is_primary=is_primary
        )
        if not updated:
            raise ContactNotFound(contact_id)
        return updated

    async def delete_contact(self, user_id: int, contact_id: int) -> None:
        if not await self._contacts.delete(user_id, contact_id):
            raise ContactNotFound(contact_id)
