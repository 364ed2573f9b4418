"""
Profile and schedule settings for the authenticated user.
"""

from fastapi import APIRouter, Depends

from alive_ping.auth.verify import current_user_id
from alive_ping.models.api.user_request import UserSettingsUpdateRequest
from alive_ping.models.api.user_response import UserProfileResponse
from alive_ping.routes.dependencies import get_user_service, to_http_error
from alive_ping.services.errors import CheckInServiceError
from alive_ping.services.user_service import UserService

router = APIRouter(tags=["user"])


@router.get("/me", response_model=UserProfileResponse)
async def get_me(
    user_id: int = Depends(current_user_id),
    service: UserService = Depends(get_user_service),
):
    try:
        user = await service.get_profile(user_id)
    except CheckInServiceError as e:
        raise to_http_error(e) from e
    return UserProfileResponse.from_domain(user)


@router.put("/me/settings", response_model=UserProfileResponse)
async def update_settings(
    payload: UserSettingsUpdateRequest,
    user_id: int = Depends(current_user_id),
    service: UserService = Depends(get_user_service),
):
    """Update interval, grace period, reminder lead time, nickname or pause state."""
    try:
        user = await service.update_settings(user_id, payload.changes())
    except CheckInServiceError as e:
        raise to_http_error(e) from e
    return UserProfileResponse.from_domain(user)
