from datetime import datetime

from pydantic import BaseModel

from alive_ping.models.domain.checkin_domain import User


class UserProfileResponse(BaseModel):
    """Response for GET /me and PUT /me/settings"""

    id: int
    phone: str
    nickname: str | None
    check_in_interval_hours: float
    grace_period_hours: float
    reminder_before_hours: float
    is_paused: bool
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, user: User) -> "UserProfileResponse":
        return cls(
            id=user.id,
            phone=user.phone,
            nickname=user.nickname,
            check_in_interval_hours=user.check_in_interval_hours,
            grace_period_hours=user.grace_period_hours,
            reminder_before_hours=user.reminder_before_hours,
            is_paused=user.is_paused,
            created_at=user.created_at,
        )
