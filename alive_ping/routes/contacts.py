"""
contacts.py
-----------
Purpose:
    Emergency contact management for the authenticated user.
    Every contact is notified when the user goes overdue; the primary
    contact is notified first.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from alive_ping.auth.verify import current_user_id
from alive_ping.models.api.contact_request import ContactCreateRequest, ContactUpdateRequest
from alive_ping.models.api.contact_response import (
    ContactDeletedResponse,
    ContactListResponse,
    ContactResponse,
)
from alive_ping.routes.dependencies import get_contact_service, to_http_error
from alive_ping.services.contact_service import ContactService
from alive_ping.services.errors import CheckInServiceError

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=ContactListResponse)
async def list_contacts(
    user_id: int = Depends(current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    contacts = await service.list_contacts(user_id)
    return ContactListResponse(contacts=[ContactResponse.from_domain(c) for c in contacts])


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def add_contact(
    payload: ContactCreateRequest,
    user_id: int = Depends(current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    try:
        contact = await service.add_contact(
            user_id, payload.name, payload.phone, is_primary=payload.is_primary
        )
    except CheckInServiceError as e:
        raise to_http_error(e) from e

    return ContactResponse.from_domain(contact)


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: int,
    payload: ContactUpdateRequest,
    user_id: int = Depends(current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    if not payload.has_changes():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    try:
        contact = await service.update_contact(
            user_id,
            contact_id,
            name=payload.name,
            phone=payload.phone,
            is_primary=payload.is_primary,
        )
    except CheckInServiceError as e:
        raise to_http_error(e) from e

    return ContactResponse.from_domain(contact)


@router.delete("/{contact_id}", response_model=ContactDeletedResponse)
async def delete_contact(
    contact_id: int,
    user_id: int = Depends(current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    try:
        await service.delete_contact(user_id, contact_id)
    except CheckInServiceError as e:
        raise to_http_error(e) from e

    return ContactDeletedResponse()
