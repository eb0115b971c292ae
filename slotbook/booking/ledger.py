"""Appointment ledger queries.

Occupancy is always counted from live rows, never kept in a counter column, so
a cancellation frees capacity for the very next admission check.
"""

from datetime import date, time

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from slotbook.booking.transactions import store_errors
from slotbook.models.appointment import STATUS_UPCOMING, Appointment


def occupancy_count(
    db: Session,
    slot_id: int,
    status: str = STATUS_UPCOMING,
    exclude_appointment_id: int | None = None,
) -> int:
    query = select(func.count(Appointment.id)).where(
        Appointment.slot_id == slot_id,
        Appointment.status == status,
    )
    if exclude_appointment_id is not None:
        query = query.where(Appointment.id != exclude_appointment_id)

    with store_errors(db):
        return db.scalar(query) or 0


def occupancy_counts(db: Session, slot_ids: list[int], status: str = STATUS_UPCOMING) -> dict[int, int]:
    if not slot_ids:
        return {}
    query = (
        select(Appointment.slot_id, func.count(Appointment.id))
        .where(Appointment.slot_id.in_(slot_ids), Appointment.status == status)
        .group_by(Appointment.slot_id)
    )
    with store_errors(db):
        return {slot_id: count for slot_id, count in db.execute(query)}


def find_conflicting(
    db: Session,
    date_local: date,
    time_local: time,
    status: str = STATUS_UPCOMING,
    exclude_appointment_id: int | None = None,
) -> Appointment | None:
    query = select(Appointment).where(
        Appointment.date_local == date_local,
        Appointment.time_local == time_local,
        Appointment.status == status,
    )
    if exclude_appointment_id is not None:
        query = query.where(Appointment.id != exclude_appointment_id)

    with store_errors(db):
        return db.scalars(query.limit(1)).first()


def booked_times_on(db: Session, date_local: date) -> set[time]:
    query = select(Appointment.time_local).where(
        Appointment.date_local == date_local,
        Appointment.status == STATUS_UPCOMING,
    )
    with store_errors(db):
        return set(db.scalars(query))


def insert_appointment(db: Session, appointment: Appointment) -> Appointment:
    """Stage a new ledger row; the surrounding admission unit commits it."""
    db.add(appointment)
    db.flush()
    return appointment


def get_appointment(db: Session, appointment_id: int, lock: bool = False) -> Appointment | None:
    query = select(Appointment).where(Appointment.id == appointment_id)
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    with store_errors(db):
        return db.scalars(query).first()


def set_status(db: Session, appointment_id: int, new_status: str, expected_status: str = STATUS_UPCOMING) -> bool:
    """Move an appointment to new_status if it is still in expected_status.

    Returns False when the row is missing or already moved on, which makes
    concurrent cancellations of the same appointment safe.
    """
    result = db.execute(
        update(Appointment)
        .where(Appointment.id == appointment_id, Appointment.status == expected_status)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def find_appointments(
    db: Session,
    user_id: int | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Appointment]:
    query = select(Appointment)
    if user_id is not None:
        query = query.where(Appointment.user_id == user_id)
    if status is not None:
        query = query.where(Appointment.status == status)
    if date_from is not None:
        query = query.where(Appointment.date_local >= date_from)
    if date_to is not None:
        query = query.where(Appointment.date_local <= date_to)

    with store_errors(db):
        return list(db.scalars(query.order_by(Appointment.start_at_utc.desc(), Appointment.id.desc())))
