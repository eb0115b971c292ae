import logging
from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.errors import (
    BookingError,
    DuplicateBookingError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from slotbook.models.appointment import RAW_UPCOMING_INDEX
from slotbook.models.slot import AppointmentSlot

logger = logging.getLogger(__name__)

# SQLite names the columns, not the index, when a unique index rejects a row.
RAW_UPCOMING_COLUMNS = 'appointments.date_local, appointments.time_local'


@contextmanager
def store_errors(db: Session):
    """Roll back and report database failures as retryable infrastructure errors."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning('Store call failed: %s', exc.__class__.__name__)
        raise InfrastructureError('Database unavailable. Try again shortly.') from exc


def lock_slot(db: Session, slot_id: int) -> None:
    """Take the slot's admission lock for the rest of the current transaction.

    The write on the slot row holds a row lock on PostgreSQL and the database
    write lock on SQLite until commit or rollback, so concurrent admissions for
    the same slot run one at a time, even across processes.
    """
    result = db.execute(
        update(AppointmentSlot)
        .where(AppointmentSlot.id == slot_id)
        .values(lock_version=AppointmentSlot.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError('Slot not found.')


def is_raw_booking_conflict(exc: IntegrityError) -> bool:
    """True when the unique index on upcoming date/time bookings rejected the row."""
    diag = getattr(exc.orig, 'diag', None)
    constraint = getattr(diag, 'constraint_name', None)
    if constraint:
        return constraint == RAW_UPCOMING_INDEX

    message = str(exc.orig)
    return RAW_UPCOMING_INDEX in message or RAW_UPCOMING_COLUMNS in message


@contextmanager
def admission(db: Session, slot_id: int | None = None):
    """Check-and-insert unit for one booking decision.

    With a slot id, the body runs under that slot's lock. Without one (the
    legacy date/time path) the unique index on upcoming raw bookings decides
    between concurrent winners. The body's writes are committed on success and
    rolled back on any failure.
    """
    try:
        if slot_id is not None:
            lock_slot(db, slot_id)
        yield
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        if is_raw_booking_conflict(exc):
            raise DuplicateBookingError('Time slot already booked.') from exc
        logger.warning('Admission rejected by a constraint: %s', exc.orig)
        raise ValidationError('Booking references a missing user or slot.') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning('Admission aborted by the store: %s', exc.__class__.__name__)
        raise InfrastructureError('Database unavailable. Try again shortly.') from exc
