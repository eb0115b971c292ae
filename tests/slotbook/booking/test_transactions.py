from datetime import date, time
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from slotbook.booking import ledger, rule_store
from slotbook.booking.engine import BookingEngine
from slotbook.booking.transactions import is_raw_booking_conflict
from slotbook.core.errors import DuplicateBookingError, InfrastructureError, ValidationError

BOOKING_DAY = date(2030, 1, 7)


@pytest.fixture
def engine(notifier):
    return BookingEngine(notifier=notifier)


def test_locked_store_rejects_slot_booking_as_infrastructure_error(
    db, impatient_db, hold_write_lock, engine, make_user, make_slot
) -> None:
    user = make_user()
    slot = make_slot()

    with hold_write_lock():
        with pytest.raises(InfrastructureError) as exception_info:
            engine.book_slot(impatient_db, user.id, slot.id, 'online')

    assert exception_info.value.status_code == 503
    assert exception_info.value.kind == 'infrastructure_error'
    assert not impatient_db.in_transaction()
    assert ledger.occupancy_count(db, slot.id) == 0


def test_locked_store_rejects_raw_booking_as_infrastructure_error(
    db, impatient_db, hold_write_lock, engine, make_user
) -> None:
    user = make_user()

    with hold_write_lock():
        with pytest.raises(InfrastructureError):
            engine.book_raw(impatient_db, user.id, BOOKING_DAY, time(9, 0), 'online')

    assert not impatient_db.in_transaction()
    assert ledger.find_appointments(db, user_id=user.id) == []


def test_locked_store_rejects_rule_upsert_as_infrastructure_error(db, impatient_db, hold_write_lock) -> None:
    with hold_write_lock():
        with pytest.raises(InfrastructureError):
            rule_store.upsert_day_rule(impatient_db, BOOKING_DAY, blocked=True)

    assert rule_store.get_day_rule(db, BOOKING_DAY) is None


def test_session_recovers_after_infrastructure_error(impatient_db, hold_write_lock, engine, make_user, make_slot) -> None:
    user = make_user()
    slot = make_slot()
    with hold_write_lock():
        with pytest.raises(InfrastructureError):
            engine.book_slot(impatient_db, user.id, slot.id, 'online')

    appointment = engine.book_slot(impatient_db, user.id, slot.id, 'online')

    assert appointment.status == 'upcoming'


def test_missing_user_is_a_validation_error_not_a_duplicate(db, engine, make_slot) -> None:
    slot = make_slot()

    with pytest.raises(ValidationError):
        engine.book_slot(db, 9999, slot.id, 'online')
    with pytest.raises(ValidationError):
        engine.book_raw(db, 9999, BOOKING_DAY, time(9, 0), 'online')

    assert ledger.occupancy_count(db, slot.id) == 0


def test_raw_duplicate_still_reported_as_duplicate(db, engine, make_user) -> None:
    engine.book_raw(db, make_user('first@example.com').id, BOOKING_DAY, time(9, 0), 'online')

    with pytest.raises(DuplicateBookingError):
        engine.book_raw(db, make_user('second@example.com').id, BOOKING_DAY, time(9, 0), 'online')


@pytest.mark.parametrize(
    ('orig', 'expected'),
    [
        (SimpleNamespace(diag=SimpleNamespace(constraint_name='uq_appointments_raw_upcoming')), True),
        (SimpleNamespace(diag=SimpleNamespace(constraint_name='appointments_user_id_fkey')), False),
        (Exception('UNIQUE constraint failed: appointments.date_local, appointments.time_local'), True),
        (Exception('FOREIGN KEY constraint failed'), False),
        (Exception('NOT NULL constraint failed: appointments.mode'), False),
    ],
)
def test_is_raw_booking_conflict_only_matches_raw_booking_index(orig, expected: bool) -> None:
    assert is_raw_booking_conflict(IntegrityError('INSERT INTO appointments', {}, orig)) is expected
