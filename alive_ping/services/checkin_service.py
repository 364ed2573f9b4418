"""
Check-in intake and read-side operations.

submit_check_in is the only mutator of a user's current deadline. The
once-per-day guard uses the configured local day; the insert itself runs
under the user's row lock so it serializes with escalation appends.
"""

from datetime import timedelta

from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.domain.checkin_domain import (
    CheckIn,
    CheckInHistoryPage,
    CheckInStats,
    DeadlineClassification,
    DeadlineState,
    LatestCheckIn,
    User,
)
from alive_ping.services.deadline import classify_user
from alive_ping.services.errors import AlreadyCheckedInToday, ServicePaused, UserNotFound
from alive_ping.utils.clock import Clock, hours, local_day

logger = get_logger(__name__)

STATS_WINDOW_DAYS = 30
MAX_HISTORY_LIMIT = 100

_STATUS_BY_STATE = {
    DeadlineState.NO_CHECKIN: "no_checkin",
    DeadlineState.ON_TIME: "normal",
    DeadlineState.APPROACHING: "reminder",
    DeadlineState.IN_GRACE: "overdue",
    DeadlineState.OVERDUE_ELIGIBLE: "overdue",
}


class CheckInService:
    """Operations behind the /checkin endpoints."""

    def __init__(self, users, checkins, clock: Clock, local_day_offset: timedelta):
        self._users = users
        self._checkins = checkins
        self._clock = clock
        self._offset = local_day_offset

    async def _load_user(self, user_id: int) -> User:
        user = await self._users.get(user_id)
        if not user:
            raise UserNotFound(user_id)
        return user

    async def submit_check_in(self, user_id: int) -> CheckIn:
        """
        Record a check-in now and push the deadline forward.

        Raises:
            UserNotFound: unknown user
            ServicePaused: user has paused monitoring
            AlreadyCheckedInToday: a check-in already exists in the local day
        """
        user = await self._load_user(user_id)
        if user.is_paused:
            raise ServicePaused(user_id)

        now = self._clock.now()
        day = local_day(now, self._offset)
        next_deadline = now + hours(user.check_in_interval_hours)

        check_in = await self._checkins.insert_once_per_day(user_id, now, next_deadline, day)
        if check_in is None:
            logger.info("Duplicate check-in rejected", user_id=user_id, local_date=str(day.date))
            raise AlreadyCheckedInToday(user_id)

        logger.info(
            "Check-in recorded",
            user_id=user_id,
            check_in_id=check_in.id,
            next_deadline=check_in.next_deadline.isoformat(),
        )
        return check_in

    async def get_latest_check_in(self, user_id: int) -> LatestCheckIn | None:
        """Latest check-in with an overdue flag, or None if the user never checked in."""
        latest = await self._checkins.get_latest(user_id)
        if latest is None:
            return None
        return LatestCheckIn(check_in=latest, is_overdue=self._clock.now() >= latest.next_deadline)

    async def get_history(self, user_id: int, page: int = 1, limit: int = 20) -> CheckInHistoryPage:
        page = max(1, page)
        limit = min(max(1, limit), MAX_HISTORY_LIMIT)
        offset = (page - 1) * limit

        check_ins = await self._checkins.list_history(user_id, limit, offset)
        total = await self._checkins.count(user_id)
        return CheckInHistoryPage(check_ins=check_ins, page=page, limit=limit, total=total)

    async def classify(self, user_id: int) -> DeadlineClassification:
        """Classify the user's current deadline at the clock's now."""
        user = await self._load_user(user_id)
        latest = await self._checkins.get_latest(user_id)
        return classify_user(self._clock.now(), user, latest)

    async def get_stats(self, user_id: int) -> CheckInStats:
        user = await self._load_user(user_id)
        now = self._clock.now()

        latest = await self._checkins.get_latest(user_id)
        classification = classify_user(now, user, latest)
        today_checked = await self._checkins.exists_in_day(user_id, local_day(now, self._offset))
        days = await self._checkins.count_local_days_since(
            user_id, now - timedelta(days=STATS_WINDOW_DAYS), self._offset
        )

        return CheckInStats(
            status=_STATUS_BY_STATE[classification.state],
            classification=classification,
            is_paused=user.is_paused,
            today_checked=today_checked,
            consecutive_days=days,
            latest_check_in=latest,
            check_in_interval_hours=user.check_in_interval_hours,
            grace_period_hours=user.grace_period_hours,
            reminder_before_hours=user.reminder_before_hours,
        )
