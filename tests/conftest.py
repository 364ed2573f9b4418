import asyncio
import itertools
from datetime import UTC, datetime, timedelta

import pytest

from alive_ping.auth.verify import auth_dependency
from alive_ping.models.domain.checkin_domain import (
    ActiveDeadline,
    CheckIn,
    Contact,
    DailyEscalationSummary,
    EscalationRecord,
    User,
)
from alive_ping.services.checkin_service import CheckInService
from alive_ping.services.contact_service import ContactService
from alive_ping.services.errors import EscalationSuperseded
from alive_ping.services.escalation_engine import EscalationEngine, EscalationPolicy
from alive_ping.services.user_service import UserService
from alive_ping.utils.clock import FrozenClock, ensure_utc, hours, local_date

LOCAL_OFFSET = timedelta(hours=8)

# 2024-03-01 02:00 UTC is 10:00 local (UTC+8)
T0 = datetime(2024, 3, 1, 2, 0, tzinfo=UTC)


class FakeUserStore:
    def __init__(self):
        self.users: dict[int, User] = {}

    def add(self, user_id: int = 1, **fields) -> User:
        user = User(id=user_id, phone=fields.pop("phone", f"1380000{user_id:04d}"), **fields)
        self.users[user_id] = user
        return user

    async def get(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    async def update_settings(self, user_id: int, changes: dict) -> User | None:
        user = self.users.get(user_id)
        if not user:
            return None
        updated = user.model_copy(update=changes)
        self.users[user_id] = updated
        return updated


class FakeCheckInStore:
    def __init__(self, users: FakeUserStore):
        self._users = users
        self._ids = itertools.count(1)
        self.checkins: list[CheckIn] = []

    def add(self, user_id: int, check_in_time: datetime, interval_hours: float = 24.0) -> CheckIn:
        check_in = CheckIn(
            id=next(self._ids),
            user_id=user_id,
            check_in_time=check_in_time,
            next_deadline=check_in_time + hours(interval_hours),
        )
        self.checkins.append(check_in)
        return check_in

    def for_user(self, user_id: int) -> list[CheckIn]:
        rows = [c for c in self.checkins if c.user_id == user_id]
        return sorted(rows, key=lambda c: (c.check_in_time, c.id), reverse=True)

    async def get_latest(self, user_id: int) -> CheckIn | None:
        rows = self.for_user(user_id)
        return rows[0] if rows else None

    async def list_history(self, user_id: int, limit: int, offset: int) -> list[CheckIn]:
        return self.for_user(user_id)[offset : offset + limit]

    async def count(self, user_id: int) -> int:
        return len(self.for_user(user_id))

    async def exists_in_day(self, user_id: int, day) -> bool:
        return any(day.contains(c.check_in_time) for c in self.for_user(user_id))

    async def count_local_days_since(self, user_id: int, since: datetime, offset: timedelta) -> int:
        return len(
            {
                local_date(c.check_in_time, offset)
                for c in self.for_user(user_id)
                if c.check_in_time >= since
            }
        )

    async def insert_once_per_day(self, user_id, check_in_time, next_deadline, day):
        if user_id not in self._users.users:
            return None
        if await self.exists_in_day(user_id, day):
            return None
        check_in = CheckIn(
            id=next(self._ids),
            user_id=user_id,
            check_in_time=check_in_time,
            next_deadline=next_deadline,
        )
        self.checkins.append(check_in)
        return check_in

    async def list_active_deadlines(self) -> list[ActiveDeadline]:
        active = []
        for user_id in sorted(self._users.users):
            user = self._users.users[user_id]
            latest = await self.get_latest(user_id)
            if user.is_paused or latest is None:
                continue
            active.append(ActiveDeadline(user=user, latest_check_in=latest))
        return active


class FakeContactStore:
    def __init__(self):
        self._ids = itertools.count(1)
        self.contacts: dict[int, Contact] = {}

    def add(self, user_id: int, name: str, phone: str, is_primary: bool = False) -> Contact:
        contact = Contact(
            id=next(self._ids), user_id=user_id, name=name, phone=phone, is_primary=is_primary
        )
        self.contacts[contact.id] = contact
        return contact

    def _clear_primary(self, user_id: int, keep_id: int | None = None) -> None:
        for contact_id, contact in self.contacts.items():
            if contact.user_id == user_id and contact_id != keep_id and contact.is_primary:
                self.contacts[contact_id] = contact.model_copy(update={"is_primary": False})

    async def list_for_user(self, user_id: int) -> list[Contact]:
        rows = [c for c in self.contacts.values() if c.user_id == user_id]
        return sorted(rows, key=lambda c: (not c.is_primary, c.id))

    async def get(self, user_id: int, contact_id: int) -> Contact | None:
        contact = self.contacts.get(contact_id)
        return contact if contact and contact.user_id == user_id else None

    async def find_by_phone(self, user_id: int, phone: str, exclude_id: int | None = None):
        for contact in self.contacts.values():
            if contact.user_id == user_id and contact.phone == phone and contact.id != exclude_id:
                return contact
        return None

    async def create(self, user_id: int, name: str, phone: str, is_primary: bool) -> Contact:
        if is_primary:
            self._clear_primary(user_id)
        return self.add(user_id, name, phone, is_primary)

    async def update(self, user_id, contact_id, *, name=None, phone=None, is_primary=None):
        contact = await self.get(user_id, contact_id)
        if not contact:
            return None
        changes = {
            key: value
            for key, value in {"name": name, "phone": phone, "is_primary": is_primary}.items()
            if value is not None
        }
        if is_primary:
            self._clear_primary(user_id, keep_id=contact_id)
        updated = contact.model_copy(update=changes)
        self.contacts[contact_id] = updated
        return updated

    async def delete(self, user_id: int, contact_id: int) -> bool:
        if not await self.get(user_id, contact_id):
            return False
        del self.contacts[contact_id]
        return True


class FakeEscalationStore:
    """Append-only attempt log that re-validates like the real store."""

    def __init__(self, users: FakeUserStore, checkins: FakeCheckInStore):
        self._users = users
        self._checkins = checkins
        self._ids = itertools.count(1)
        self.records: list[EscalationRecord] = []
        self.fail_appends = 0
        # Hooks that simulate a concurrent check-in or pause
        self.before_check = None
        self.before_append = None

    async def today_summary(self, user_id: int, day) -> DailyEscalationSummary:
        rows = [r for r in self.records if r.user_id == user_id and day.contains(r.sent_at)]
        if not rows:
            return DailyEscalationSummary()
        return DailyEscalationSummary(
            sent_today=max(r.sequence_number for r in rows),
            last_sent_at=max(r.sent_at for r in rows),
        )

    async def _eligible(self, user_id: int, expected_deadline: datetime) -> bool:
        user = self._users.users.get(user_id)
        latest = await self._checkins.get_latest(user_id)
        if not user or user.is_paused or not latest:
            return False
        return ensure_utc(latest.next_deadline) == ensure_utc(expected_deadline)

    async def is_still_eligible(self, user_id: int, expected_deadline: datetime) -> bool:
        if self.before_check:
            hook, self.before_check = self.before_check, None
            hook()
        return await self._eligible(user_id, expected_deadline)

    async def append(self, record: EscalationRecord, expected_deadline: datetime) -> EscalationRecord:
        if self.before_append:
            hook, self.before_append = self.before_append, None
            hook()

        if self.fail_appends:
            self.fail_appends -= 1
            raise RuntimeError("connection reset")

        if not await self._eligible(record.user_id, expected_deadline):
            raise EscalationSuperseded(record.user_id)
        return await self.record_attempt(record)

    async def record_attempt(self, record: EscalationRecord) -> EscalationRecord:
        stored = record.model_copy(update={"id": next(self._ids)})
        self.records.append(stored)
        return stored


class FakeNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str | None, str]] = []
        self.failing_phones: set[str] = set()
        self.raising_phones: set[str] = set()
        self.hanging_phones: set[str] = set()
        self.closed = False

    async def send(self, contact_phone: str, user_name: str | None, user_phone: str) -> bool:
        self.sent.append((contact_phone, user_name, user_phone))
        if contact_phone in self.hanging_phones:
            await asyncio.sleep(10)
        if contact_phone in self.raising_phones:
            raise ConnectionError("gateway unreachable")
        return contact_phone not in self.failing_phones

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def users():
    return FakeUserStore()


@pytest.fixture
def checkins(users):
    return FakeCheckInStore(users)


@pytest.fixture
def contacts():
    return FakeContactStore()


@pytest.fixture
def escalations(users, checkins):
    return FakeEscalationStore(users, checkins)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def policy():
    return EscalationPolicy(
        max_sms_count=3,
        min_interval=timedelta(minutes=30),
        local_day_offset=LOCAL_OFFSET,
        notifier_timeout_seconds=0.05,
    )


@pytest.fixture
def engine(checkins, contacts, escalations, notifier, policy):
    return EscalationEngine(
        checkins=checkins,
        contacts=contacts,
        escalations=escalations,
        notifier=notifier,
        policy=policy,
    )


@pytest.fixture
def checkin_service(users, checkins, clock):
    return CheckInService(users, checkins, clock, LOCAL_OFFSET)


@pytest.fixture
def contact_service(contacts):
    return ContactService(contacts)


@pytest.fixture
def user_service(users):
    return UserService(users)


@pytest.fixture
def auth_override():
    def _override():
        return {"userId": 1}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply
