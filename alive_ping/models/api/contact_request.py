import re

from pydantic import BaseModel, Field, field_validator

# Mainland China mobile numbers
PHONE_PATTERN = re.compile(r"^1[3-9]\d{9}$")


def _validate_phone(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number format")
    return value


class ContactCreateRequest(BaseModel):
    """Request body for POST /contacts"""

    name: str = Field(..., min_length=1, max_length=100)
    phone: str
    is_primary: bool = False

    _check_phone = field_validator("phone")(_validate_phone)


class ContactUpdateRequest(BaseModel):
    """Request body for PUT /contacts/{id}; at least one field required."""

    name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = None
    is_primary: bool | None = None

    _check_phone = field_validator("phone")(_validate_phone)

    def has_changes(self) -> bool:
        return any(value is not None for value in (self.name, self.phone, self.is_primary))
