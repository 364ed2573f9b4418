from datetime import datetime

from pydantic import BaseModel

from alive_ping.models.domain.checkin_domain import Contact


class ContactResponse(BaseModel):
    id: int
    name: str
    phone: str
    is_primary: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, contact: Contact) -> "ContactResponse":
        return cls(
            id=contact.id,
            name=contact.name,
            phone=contact.phone,
            is_primary=contact.is_primary,
            created_at=contact.created_at,
            updated_at=contact.updated_at,
        )


class ContactListResponse(BaseModel):
    contacts: list[ContactResponse]


class ContactDeletedResponse(BaseModel):
    message: str = "Contact deleted"
