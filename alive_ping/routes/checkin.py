"""
checkin.py
----------
Purpose:
    Check-in endpoints for the authenticated user.

Usage:
    1. POST /checkin - Record today's check-in and push the deadline forward
    2. GET /checkin/latest - Most recent check-in with an overdue flag
    3. GET /checkin/history - Paginated check-in history, newest first
    4. GET /checkin/stats - Current status, streak and schedule settings
"""

from fastapi import APIRouter, Depends, Query, status

from alive_ping.auth.verify import current_user_id
from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.api.checkin_response import (
    CheckInCreatedResponse,
    CheckInHistoryResponse,
    CheckInItem,
    CheckInStatsResponse,
    LatestCheckInItem,
    LatestCheckInResponse,
    Pagination,
)
from alive_ping.routes.dependencies import get_checkin_service, to_http_error
from alive_ping.services.checkin_service import CheckInService
from alive_ping.services.errors import CheckInServiceError

router = APIRouter(prefix="/checkin", tags=["checkin"])
logger = get_logger(__name__)


@router.post("", response_model=CheckInCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_check_in(
    user_id: int = Depends(current_user_id),
    service: CheckInService = Depends(get_checkin_service),
):
    """
    Record a check-in for today.

    Raises:
        400: Already checked in today, or monitoring is paused
        404: User not found
    """
    try:
        check_in = await service.submit_check_in(user_id)
    except CheckInServiceError as e:
        logger.info("Check-in rejected", user_id=user_id, reason=type(e).__name__)
        raise to_http_error(e) from e

    return CheckInCreatedResponse(checkin=CheckInItem.from_domain(check_in))


@router.get("/latest", response_model=LatestCheckInResponse)
async def get_latest(
    user_id: int = Depends(current_user_id),
    service: CheckInService = Depends(get_checkin_service),
):
    latest = await service.get_latest_check_in(user_id)
    if latest is None:
        return LatestCheckInResponse(checkin=None, message="No check-in yet")

    check_in = latest.check_in
    return LatestCheckInResponse(
        checkin=LatestCheckInItem(
            id=check_in.id,
            check_in_time=check_in.check_in_time,
            next_check_in_deadline=check_in.next_deadline,
            is_overdue=latest.is_overdue,
        )
    )


@router.get("/history", response_model=CheckInHistoryResponse, response_model_by_alias=True)
async def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    service: CheckInService = Depends(get_checkin_service),
):
    history = await service.get_history(user_id, page=page, limit=limit)
    return CheckInHistoryResponse(
        checkins=[CheckInItem.from_domain(c) for c in history.check_ins],
        pagination=Pagination(
            page=history.page,
            limit=history.limit,
            total=history.total,
            total_pages=history.total_pages,
        ),
    )


@router.get("/stats", response_model=CheckInStatsResponse)
async def get_stats(
    user_id: int = Depends(current_user_id),
    service: CheckInService = Depends(get_checkin_service),
):
    try:
        stats = await service.get_stats(user_id)
    except CheckInServiceError as e:
        raise to_http_error(e) from e
    return CheckInStatsResponse.from_domain(stats)
