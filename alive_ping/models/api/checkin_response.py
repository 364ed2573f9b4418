from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from alive_ping.models.domain.checkin_domain import CheckIn, CheckInStats, DeadlineState


class CheckInItem(BaseModel):
    id: int
    check_in_time: datetime
    next_check_in_deadline: datetime

    @classmethod
    def from_domain(cls, check_in: CheckIn) -> "CheckInItem":
        return cls(
            id=check_in.id,
            check_in_time=check_in.check_in_time,
            next_check_in_deadline=check_in.next_deadline,
        )


class CheckInCreatedResponse(BaseModel):
    """Response for POST /checkin"""

    message: str = "Check-in recorded"
    checkin: CheckInItem


class LatestCheckInItem(CheckInItem):
    is_overdue: bool


class LatestCheckInResponse(BaseModel):
    """Response for GET /checkin/latest"""

    checkin: LatestCheckInItem | None
    message: str | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class CheckInHistoryResponse(BaseModel):
    """Response for GET /checkin/history"""

    checkins: list[CheckInItem]
    pagination: Pagination


class CheckInStatsResponse(BaseModel):
    """Response for GET /checkin/stats"""

    status: Literal["normal", "reminder", "overdue", "no_checkin"]
    state: DeadlineState
    is_paused: bool
    today_checked: bool
    consecutive_days: int
    latest_checkin: CheckInItem | None
    next_deadline: datetime | None
    grace_ends_at: datetime | None
    is_overdue: bool
    check_in_interval_hours: float
    grace_period_hours: float
    reminder_before_hours: float

    @classmethod
    def from_domain(cls, stats: CheckInStats) -> "CheckInStatsResponse":
        return cls(
            status=stats.status,
            state=stats.classification.state,
            is_paused=stats.is_paused,
            today_checked=stats.today_checked,
            consecutive_days=stats.consecutive_days,
            latest_checkin=(
                CheckInItem.from_domain(stats.latest_check_in) if stats.latest_check_in else None
            ),
            next_deadline=stats.next_deadline,
            grace_ends_at=stats.classification.grace_ends_at,
            is_overdue=stats.is_overdue,
            check_in_interval_hours=stats.check_in_interval_hours,
            grace_period_hours=stats.grace_period_hours,
            reminder_before_hours=stats.reminder_before_hours,
        )
