"""
End-to-end flow over the in-memory stores: check in, miss the deadline,
get escalated up to the daily cap, then check in again and stop.
"""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from alive_ping.config import Settings
from alive_ping.jobs.escalation_job import EscalationJob
from alive_ping.models.domain.checkin_domain import DeadlineState
from alive_ping.runtime import build_runtime
from alive_ping.services.escalation_engine import EscalationEngine, EscalationPolicy
from alive_ping.utils.clock import FrozenClock


@pytest.mark.asyncio
async def test_missed_check_in_escalates_until_cap(users, checkins, contacts, escalations, notifier, checkin_service, engine, clock):
    users.add(1, check_in_interval_hours=24, grace_period_hours=2, reminder_before_hours=0.5)
    contacts.add(1, "Mom", "13900000001", is_primary=True)
    contacts.add(1, "Dad", "13900000002")
    job = EscalationJob(engine, clock)

    await checkin_service.submit_check_in(1)
    start = clock.now()

    clock.set(start + timedelta(hours=23))
    assert (await checkin_service.classify(1)).state == DeadlineState.ON_TIME
    await job.run_once()
    assert escalations.records == []

    clock.set(start + timedelta(hours=25))
    assert (await checkin_service.classify(1)).state == DeadlineState.IN_GRACE
    await job.run_once()
    assert escalations.records == []

    clock.set(start + timedelta(hours=26, seconds=1))
    metrics = await job.run_once()
    assert metrics["rounds_sent"] == 1
    assert len(escalations.records) == 2

    # Sweeps every 5 minutes for two hours: throttle and cap keep it to 3 rounds
    for _ in range(24):
        clock.advance(timedelta(minutes=5))
        await job.run_once()

    sequences = sorted({r.sequence_number for r in escalations.records})
    assert sequences == [1, 2, 3]
    assert len(escalations.records) == 6
    assert len(notifier.sent) == 6

    # The user comes back and checks in; no further rounds
    await checkin_service.submit_check_in(1)
    clock.advance(timedelta(hours=1))
    await job.run_once()

    assert len(escalations.records) == 6
    assert (await checkin_service.classify(1)).state == DeadlineState.ON_TIME


@pytest.mark.asyncio
async def test_overlapping_sweeps_do_not_exceed_cap(users, checkins, contacts, escalations, notifier):
    users.add(1)
    checkins.add(1, datetime(2024, 3, 1, 2, 0, tzinfo=UTC))
    contacts.add(1, "Mom", "13900000001")
    engine = EscalationEngine(
        checkins=checkins,
        contacts=contacts,
        escalations=escalations,
        notifier=notifier,
        policy=EscalationPolicy(max_sms_count=3, min_interval=None),
    )

    now = datetime(2024, 3, 2, 6, 0, tzinfo=UTC)
    for _ in range(10):
        await engine.run_sweep(now)

    assert max(r.sequence_number for r in escalations.records) == 3
    assert len(escalations.records) == 3


@pytest.mark.asyncio
async def test_build_runtime_wires_components(notifier):
    pool = SimpleNamespace(close=AsyncMock())
    config = Settings(ESCALATION_SWEEP_INTERVAL_MINUTES=2, MAX_SMS_COUNT=5, SMS_INTERVAL_ENABLED=False)
    clock = FrozenClock(datetime(2024, 3, 1, tzinfo=UTC))

    runtime = build_runtime(pool, config, clock=clock, notifier=notifier)

    assert runtime.escalation_job.interval_minutes == 2
    assert runtime.engine.policy.max_sms_count == 5
    assert runtime.engine.policy.min_interval is None
    assert runtime.engine.policy.local_day_offset == timedelta(hours=8)
    assert set(runtime.scheduler.jobs) == {"escalation_sweep", "reminder_sweep"}

    await runtime.close()

    assert notifier.closed is True
    pool.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_runtime_close_always_closes_pool(notifier):
    pool = SimpleNamespace(close=AsyncMock())
    config = Settings(ESCALATION_SWEEP_INTERVAL_MINUTES=2)
    runtime = build_runtime(pool, config, notifier=notifier)
    runtime.scheduler.stop = AsyncMock(side_effect=RuntimeError("scheduler stuck"))

    with pytest.raises(RuntimeError):
        await runtime.close()

    assert notifier.closed is True
    pool.close.assert_awaited_once()
