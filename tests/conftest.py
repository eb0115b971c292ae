import os
from contextlib import contextmanager
from datetime import date, time, timedelta

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from slotbook.booking.slot_store import create_slot  # noqa: E402
from slotbook.booking.timeutils import local_to_utc  # noqa: E402
from slotbook.database import Database  # noqa: E402
from slotbook.models.user import User  # noqa: E402

BOOKING_DAY = date(2030, 1, 7)


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def notify(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))


class FailingNotifier:
    def notify(self, event: str, payload: dict) -> None:
        raise RuntimeError('SMTP relay is down')


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'slotbook.db'}", lock_timeout=30)
    database.create_schema()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def impatient_db(database):
    # Same file, but gives up on the write lock at once.
    impatient = Database(database.url, lock_timeout=0)
    session = impatient.session()
    try:
        yield session
    finally:
        session.close()
        impatient.dispose()


@pytest.fixture
def hold_write_lock(database):
    @contextmanager
    def _hold_write_lock():
        connection = database.engine.connect()
        try:
            connection.exec_driver_sql('BEGIN IMMEDIATE')
            yield
        finally:
            connection.rollback()
            connection.close()

    return _hold_write_lock


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(email: str = 'applicant@example.com', role: str = 'applicant', full_name: str = 'Test Applicant'):
        user = User(email=email, full_name=full_name, phone='0790000000', role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_slot(db):
    def _make_slot(
        day: date = BOOKING_DAY,
        at: time = time(10, 0),
        capacity: int = 3,
        duration_minutes: int = 30,
        allow_online: bool = True,
        allow_in_person: bool = True,
    ):
        start_at = local_to_utc(day, at)
        return create_slot(
            db,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=duration_minutes),
            capacity=capacity,
            allow_online=allow_online,
            allow_in_person=allow_in_person,
        )

    return _make_slot


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()
