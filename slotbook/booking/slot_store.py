from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotbook.booking.timeutils import local_day_bounds
from slotbook.booking.transactions import store_errors
from slotbook.core.errors import NotFoundError, ValidationError
from slotbook.models.slot import AppointmentSlot

SLOT_FLAG_FIELDS = ('is_active', 'capacity', 'allow_online', 'allow_in_person')


def create_slot(
    db: Session,
    start_at: datetime,
    end_at: datetime,
    capacity: int,
    allow_online: bool = True,
    allow_in_person: bool = True,
    commit: bool = True,
) -> AppointmentSlot:
    if end_at <= start_at:
        raise ValidationError('Slot end must be after its start.')
    if capacity < 1:
        raise ValidationError('Slot capacity must be a positive integer.')

    slot = AppointmentSlot(
        start_at=start_at,
        end_at=end_at,
        is_active=True,
        capacity=capacity,
        allow_online=allow_online,
        allow_in_person=allow_in_person,
        lock_version=0,
    )
    with store_errors(db):
        db.add(slot)
        if commit:
            db.commit()
            db.refresh(slot)
        else:
            db.flush()
    return slot


def get_slot(db: Session, slot_id: int) -> AppointmentSlot | None:
    with store_errors(db):
        return db.get(AppointmentSlot, slot_id)


def find_slots(
    db: Session,
    date_from: date | None = None,
    date_to: date | None = None,
    active_only: bool = False,
) -> list[AppointmentSlot]:
    query = select(AppointmentSlot)

    if date_from is not None or date_to is not None:
        range_start, range_end = local_day_bounds(date_from or date_to, date_to or date_from)
        query = query.where(AppointmentSlot.start_at >= range_start, AppointmentSlot.start_at < range_end)
    if active_only:
        query = query.where(AppointmentSlot.is_active.is_(True))

    with store_errors(db):
        return list(db.scalars(query.order_by(AppointmentSlot.start_at.asc(), AppointmentSlot.id.asc())))


def find_slot_by_start(db: Session, start_at: datetime, active_only: bool = False) -> AppointmentSlot | None:
    query = select(AppointmentSlot).where(AppointmentSlot.start_at == start_at)
    if active_only:
        query = query.where(AppointmentSlot.is_active.is_(True))

    with store_errors(db):
        return db.scalars(query.order_by(AppointmentSlot.id.asc()).limit(1)).first()


def update_slot(db: Session, slot_id: int, **flags) -> AppointmentSlot:
    unknown = set(flags) - set(SLOT_FLAG_FIELDS)
    if unknown:
        raise ValidationError(f'Unknown slot fields: {", ".join(sorted(unknown))}.')
    if flags.get('capacity') is not None and flags['capacity'] < 1:
        raise ValidationError('Slot capacity must be a positive integer.')

    with store_errors(db):
        slot = db.get(AppointmentSlot, slot_id)
        if slot is None:
            raise NotFoundError('Slot not found.')

        for field, value in flags.items():
            if value is not None:
                setattr(slot, field, value)

        db.commit()
        db.refresh(slot)
    return slot
