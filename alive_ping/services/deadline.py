"""
Deadline classification.

Pure function of (now, grace period, reminder window, current deadline).
The states partition the time line with no gaps:

    (-inf, deadline - reminder)        ON_TIME
    [deadline - reminder, deadline)    APPROACHING (on-time sub-state)
    [deadline, deadline + grace)       IN_GRACE
    [deadline + grace, +inf)           OVERDUE_ELIGIBLE
"""

from datetime import datetime

from alive_ping.models.domain.checkin_domain import (
    CheckIn,
    DeadlineClassification,
    DeadlineState,
    User,
)
from alive_ping.utils.clock import ensure_utc, hours


def classify(
    now: datetime,
    grace_period_hours: float,
    next_deadline: datetime | None,
    reminder_before_hours: float = 0.0,
) -> DeadlineClassification:
    """
    Classify a deadline at ``now``.

    Args:
        now: Instant of evaluation
        grace_period_hours: Hours after the deadline before escalation (may be 0)
        next_deadline: Current deadline, or None if the user never checked in
        reminder_before_hours: Window before the deadline reported as APPROACHING

    Returns:
        DeadlineClassification
    """
    now = ensure_utc(now)

    if next_deadline is None:
        return DeadlineClassification(state=DeadlineState.NO_CHECKIN, now=now)

    deadline = ensure_utc(next_deadline)
    grace_ends_at = deadline + hours(max(grace_period_hours, 0.0))
    remaining = deadline - now

    if now < deadline:
        state = (
            DeadlineState.APPROACHING
            if remaining <= hours(max(reminder_before_hours, 0.0))
            else DeadlineState.ON_TIME
        )
    elif now < grace_ends_at:
        state = DeadlineState.IN_GRACE
    else:
        state = DeadlineState.OVERDUE_ELIGIBLE

    return DeadlineClassification(
        state=state,
        now=now,
        next_deadline=deadline,
        grace_ends_at=grace_ends_at,
        time_remaining=remaining,
    )


def classify_user(now: datetime, user: User, latest: CheckIn | None) -> DeadlineClassification:
    """Classify using the user's own grace and reminder settings."""
    return classify(
        now,
        user.grace_period_hours,
        latest.next_deadline if latest else None,
        reminder_before_hours=user.reminder_before_hours,
    )
