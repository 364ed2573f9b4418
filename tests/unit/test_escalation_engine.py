"""
Tests for escalation rounds: eligibility, daily cap, throttle,
delivery failures and rounds superseded by a concurrent check-in.
"""

from datetime import UTC, datetime, timedelta

import pytest

from alive_ping.services.escalation_engine import EscalationEngine, EscalationPolicy, RoundOutcome

T0 = datetime(2024, 3, 1, 2, 0, tzinfo=UTC)
OVERDUE = T0 + timedelta(hours=26, seconds=1)


def seed_overdue_user(users, checkins, contacts, user_id=1, contact_count=2):
    users.add(user_id, nickname="Xiao Ming", check_in_interval_hours=24, grace_period_hours=2)
    checkins.add(user_id, T0, interval_hours=24)
    for i in range(contact_count):
        contacts.add(user_id, f"Contact {i}", f"1390000{user_id:02d}{i:02d}", is_primary=(i == 0))


@pytest.mark.asyncio
async def test_nothing_happens_before_grace_ends(users, checkins, contacts, escalations, engine):
    seed_overdue_user(users, checkins, contacts)

    metrics = await engine.run_sweep(T0 + timedelta(hours=25))

    assert metrics.states == {"in_grace": 1}
    assert escalations.records == []


@pytest.mark.asyncio
async def test_overdue_user_gets_first_round(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.rounds_sent == 1
    assert metrics.notifications_sent == 2
    assert len(escalations.records) == 2
    assert {r.sequence_number for r in escalations.records} == {1}
    assert {r.status for r in escalations.records} == {"sent"}
    assert all(r.sent_at == OVERDUE for r in escalations.records)
    # Primary contact first, user identified by nickname
    assert notifier.sent[0] == ("13900000100", "Xiao Ming", "13800000001")


@pytest.mark.asyncio
async def test_no_contacts_is_skipped(users, checkins, escalations, notifier, engine):
    users.add(1)
    checkins.add(1, T0)

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.outcomes == {"no_contacts": 1}
    assert metrics.processing_errors == 0
    assert escalations.records == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_users_without_check_in_are_ignored(users, contacts, escalations, engine):
    users.add(1)
    contacts.add(1, "Mom", "13900000001")

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.users_scanned == 0
    assert escalations.records == []


@pytest.mark.asyncio
async def test_paused_users_are_ignored(users, checkins, contacts, escalations, engine):
    seed_overdue_user(users, checkins, contacts)
    await users.update_settings(1, {"is_paused": True})

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.users_scanned == 0
    assert escalations.records == []


@pytest.mark.asyncio
async def test_daily_cap(users, checkins, contacts, escalations, engine):
    seed_overdue_user(users, checkins, contacts, contact_count=1)

    for round_number in range(4):
        await engine.run_sweep(OVERDUE + timedelta(minutes=30 * round_number))

    assert [r.sequence_number for r in escalations.records] == [1, 2, 3]

    result = await engine.escalate_user(
        (await checkins.list_active_deadlines())[0], OVERDUE + timedelta(hours=3)
    )
    assert result.outcome == RoundOutcome.CAPPED
    assert len(escalations.records) == 3


@pytest.mark.asyncio
async def test_cap_resets_on_next_local_day(users, checkins, contacts, escalations, engine):
    seed_overdue_user(users, checkins, contacts, contact_count=1)

    for round_number in range(3):
        await engine.run_sweep(OVERDUE + timedelta(minutes=30 * round_number))

    # OVERDUE is 04:00:01 UTC on 03-02 (12:00 local); next local day starts 16:00 UTC
    await engine.run_sweep(datetime(2024, 3, 2, 16, 0, tzinfo=UTC))

    assert [r.sequence_number for r in escalations.records] == [1, 2, 3, 1]


@pytest.mark.asyncio
async def test_throttle_between_rounds(users, checkins, contacts, escalations, engine):
    seed_overdue_user(users, checkins, contacts, contact_count=1)

    await engine.run_sweep(OVERDUE)
    metrics = await engine.run_sweep(OVERDUE + timedelta(minutes=29))

    assert metrics.outcomes == {"throttled": 1}
    assert len(escalations.records) == 1

    await engine.run_sweep(OVERDUE + timedelta(minutes=30))
    assert [r.sequence_number for r in escalations.records] == [1, 2]


@pytest.mark.asyncio
async def test_throttle_disabled(users, checkins, contacts, escalations, notifier, policy):
    seed_overdue_user(users, checkins, contacts, contact_count=1)
    engine = EscalationEngine(
        checkins=checkins,
        contacts=contacts,
        escalations=escalations,
        notifier=notifier,
        policy=EscalationPolicy(
            max_sms_count=3, min_interval=None, local_day_offset=policy.local_day_offset
        ),
    )

    for _ in range(3):
        await engine.run_sweep(OVERDUE)

    assert [r.sequence_number for r in escalations.records] == [1, 2, 3]


@pytest.mark.asyncio
async def test_failed_delivery_is_recorded_and_counts(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)
    notifier.failing_phones.add("13900000101")

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.notifications_sent == 1
    assert metrics.notifications_failed == 1
    statuses = {r.contact_id: r.status for r in escalations.records}
    assert sorted(statuses.values()) == ["failed", "sent"]
    failed = next(r for r in escalations.records if r.status == "failed")
    assert failed.error_detail == "notifier reported failure"


@pytest.mark.asyncio
async def test_all_deliveries_failing_still_uses_up_a_round(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts, contact_count=1)
    notifier.raising_phones.add("13900000100")

    await engine.run_sweep(OVERDUE)
    await engine.run_sweep(OVERDUE + timedelta(minutes=30))

    assert [r.sequence_number for r in escalations.records] == [1, 2]
    assert escalations.records[0].status == "failed"
    assert "ConnectionError" in escalations.records[0].error_detail


@pytest.mark.asyncio
async def test_hanging_notifier_times_out(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)
    notifier.hanging_phones.add("13900000100")

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.notifications_failed == 1
    assert metrics.notifications_sent == 1
    timed_out = next(r for r in escalations.records if r.status == "failed")
    assert "timed out" in timed_out.error_detail


@pytest.mark.asyncio
async def test_check_in_during_round_supersedes_it(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)
    escalations.before_append = lambda: checkins.add(1, OVERDUE)

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.outcomes == {"superseded": 1}
    # The primary was already notified and is logged; the second contact is not
    assert [phone for phone, _, _ in notifier.sent] == ["13900000100"]
    assert len(escalations.records) == len(notifier.sent)
    assert escalations.records[0].contact_id == 1


@pytest.mark.asyncio
async def test_pause_during_round_supersedes_it(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)

    def pause():
        users.users[1] = users.users[1].model_copy(update={"is_paused": True})

    escalations.before_append = pause

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.outcomes == {"superseded": 1}
    assert len(notifier.sent) == 1
    assert len(escalations.records) == 1


@pytest.mark.asyncio
async def test_check_in_before_send_notifies_nobody(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)
    escalations.before_check = lambda: checkins.add(1, OVERDUE)

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.outcomes == {"superseded": 1}
    assert notifier.sent == []
    assert escalations.records == []


@pytest.mark.asyncio
async def test_stale_candidate_is_not_escalated(users, checkins, contacts, escalations, notifier, engine):
    seed_overdue_user(users, checkins, contacts)
    [candidate] = await checkins.list_active_deadlines()
    checkins.add(1, OVERDUE)

    result = await engine.escalate_user(candidate, OVERDUE)

    assert result.outcome == RoundOutcome.SUPERSEDED
    assert notifier.sent == []
    assert result.records == []


@pytest.mark.asyncio
async def test_persistence_failure_is_contained(users, checkins, contacts, escalations, engine):
    seed_overdue_user(users, checkins, contacts)
    escalations.fail_appends = 1

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.persistence_failures == 1
    assert metrics.processing_errors == 0
    assert len(escalations.records) == 1


@pytest.mark.asyncio
async def test_one_user_error_does_not_stop_sweep(users, checkins, contacts, escalations, engine, monkeypatch):
    seed_overdue_user(users, checkins, contacts, user_id=1, contact_count=1)
    seed_overdue_user(users, checkins, contacts, user_id=2, contact_count=1)

    original = contacts.list_for_user

    async def flaky_list(user_id):
        if user_id == 1:
            raise RuntimeError("boom")
        return await original(user_id)

    monkeypatch.setattr(contacts, "list_for_user", flaky_list)

    metrics = await engine.run_sweep(OVERDUE)

    assert metrics.processing_errors == 1
    assert metrics.rounds_sent == 1
    assert [r.user_id for r in escalations.records] == [2]


@pytest.mark.asyncio
async def test_reminder_sweep_reports_approaching_users(users, checkins, engine):
    users.add(1, reminder_before_hours=1)
    users.add(2, reminder_before_hours=1)
    checkins.add(1, T0)
    checkins.add(2, T0 + timedelta(hours=2))

    summary = await engine.run_reminder_sweep(T0 + timedelta(hours=23, minutes=30))

    assert summary["users_scanned"] == 2
    assert summary["users_approaching"] == 1
