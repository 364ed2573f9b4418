from datetime import datetime, timedelta
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class User(BaseModel):
    """Domain model for a monitored user and their schedule settings."""

    id: int
    phone: str
    nickname: str | None = None
    check_in_interval_hours: float = 24.0
    grace_period_hours: float = 2.0
    reminder_before_hours: float = 1.0
    is_paused: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.nickname or self.phone


class CheckIn(BaseModel):
    """Immutable check-in record; next_deadline is fixed at creation."""

    id: int
    user_id: int
    check_in_time: datetime
    next_deadline: datetime


class Contact(BaseModel):
    """Emergency contact. Primary only affects notification order."""

    id: int
    user_id: int
    name: str
    phone: str
    is_primary: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


EscalationStatus = Literal["sent", "failed"]


class EscalationRecord(BaseModel):
    """One notification attempt to one contact (a row of sms_logs)."""

    id: int | None = None
    user_id: int
    contact_id: int
    sequence_number: int = Field(..., ge=1)
    sent_at: datetime
    status: EscalationStatus
    error_detail: str | None = None


class DailyEscalationSummary(BaseModel):
    """Aggregate of today's escalation log for one user."""

    sent_today: int = 0
    last_sent_at: datetime | None = None


class DeadlineState(str, Enum):
    NO_CHECKIN = "no_checkin"
    ON_TIME = "on_time"
    APPROACHING = "approaching"
    IN_GRACE = "in_grace"
    OVERDUE_ELIGIBLE = "overdue_eligible"


class DeadlineClassification(BaseModel):
    """Result of classifying a user's current deadline at a given instant."""

    state: DeadlineState
    now: datetime
    next_deadline: datetime | None = None
    grace_ends_at: datetime | None = None
    time_remaining: timedelta | None = None

    @property
    def is_on_time(self) -> bool:
        return self.state in (DeadlineState.ON_TIME, DeadlineState.APPROACHING)

    @property
    def is_past_deadline(self) -> bool:
        return self.state in (DeadlineState.IN_GRACE, DeadlineState.OVERDUE_ELIGIBLE)

    @property
    def escalation_eligible(self) -> bool:
        return self.state == DeadlineState.OVERDUE_ELIGIBLE


class ActiveDeadline(BaseModel):
    """A non-paused user paired with their most recent check-in."""

    user: User
    latest_check_in: CheckIn


class LatestCheckIn(BaseModel):
    """Most recent check-in with its overdue flag at read time."""

    check_in: CheckIn
    is_overdue: bool


class CheckInHistoryPage(BaseModel):
    check_ins: list[CheckIn]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


class CheckInStats(BaseModel):
    """Dashboard view of a user's check-in state."""

    status: Literal["normal", "reminder", "overdue", "no_checkin"]
    classification: DeadlineClassification
    is_paused: bool
    today_checked: bool
    consecutive_days: int
    latest_check_in: CheckIn | None = None
    check_in_interval_hours: float
    grace_period_hours: float
    reminder_before_hours: float

    @property
    def next_deadline(self) -> datetime | None:
        return self.latest_check_in.next_deadline if self.latest_check_in else None

    @property
    def is_overdue(self) -> bool:
        return self.classification.is_past_deadline
