"""Day and slot override rules.

Both layers are upserted as whole rows: a field the administrator leaves out
goes back to its default (``False`` for flags, ``None`` for nullable fields).
"""

from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotbook.booking.transactions import store_errors
from slotbook.core.errors import NotFoundError, ValidationError
from slotbook.models.day_rule import AppointmentDayRule
from slotbook.models.slot import AppointmentSlot
from slotbook.models.slot_rule import AppointmentSlotRule


def _validate_capacity(value: int | None, field: str) -> None:
    if value is not None and value < 0:
        raise ValidationError(f'{field} must be zero or a positive integer.')


def _upsert(db: Session, lookup, build, apply):
    """Update the row returned by lookup, or insert a new one.

    A concurrent insert of the same key loses on the unique constraint; the
    loser retries once as an update of the winner's row.
    """
    def write():
        row = lookup()
        if row is None:
            row = build()
            db.add(row)
        apply(row)
        db.commit()
        db.refresh(row)
        return row

    with store_errors(db):
        try:
            return write()
        except IntegrityError:
            db.rollback()
            return write()


def get_day_rule(db: Session, day: date) -> AppointmentDayRule | None:
    with store_errors(db):
        return db.scalars(select(AppointmentDayRule).where(AppointmentDayRule.day_date == day)).first()


def find_day_rules(db: Session, date_from: date, date_to: date) -> dict[date, AppointmentDayRule]:
    query = select(AppointmentDayRule).where(
        AppointmentDayRule.day_date >= date_from,
        AppointmentDayRule.day_date <= date_to,
    )
    with store_errors(db):
        return {rule.day_date: rule for rule in db.scalars(query)}


def upsert_day_rule(
    db: Session,
    day: date,
    blocked: bool | None = None,
    online_only: bool | None = None,
    default_capacity: int | None = None,
) -> AppointmentDayRule:
    _validate_capacity(default_capacity, 'default_capacity')

    def apply(rule: AppointmentDayRule) -> None:
        rule.is_blocked = bool(blocked)
        rule.is_online_only = bool(online_only)
        rule.default_capacity = default_capacity

    return _upsert(
        db,
        lookup=lambda: db.scalars(select(AppointmentDayRule).where(AppointmentDayRule.day_date == day)).first(),
        build=lambda: AppointmentDayRule(day_date=day),
        apply=apply,
    )


def delete_day_rule(db: Session, day: date) -> None:
    with store_errors(db):
        result = db.execute(delete(AppointmentDayRule).where(AppointmentDayRule.day_date == day))
        db.commit()
    if result.rowcount == 0:
        raise NotFoundError('Day rule not found.')


def get_slot_rule(db: Session, slot_id: int) -> AppointmentSlotRule | None:
    with store_errors(db):
        return db.scalars(select(AppointmentSlotRule).where(AppointmentSlotRule.slot_id == slot_id)).first()


def find_slot_rules(db: Session, slot_ids: list[int]) -> dict[int, AppointmentSlotRule]:
    if not slot_ids:
        return {}
    query = select(AppointmentSlotRule).where(AppointmentSlotRule.slot_id.in_(slot_ids))
    with store_errors(db):
        return {rule.slot_id: rule for rule in db.scalars(query)}


def upsert_slot_rule(
    db: Session,
    slot_id: int,
    blocked: bool | None = None,
    online_only: bool | None = None,
    capacity: int | None = None,
    allow_online: bool | None = None,
    allow_in_person: bool | None = None,
) -> AppointmentSlotRule:
    _validate_capacity(capacity, 'capacity')

    with store_errors(db):
        if db.get(AppointmentSlot, slot_id) is None:
            raise NotFoundError('Slot not found.')

    def apply(rule: AppointmentSlotRule) -> None:
        rule.is_blocked = bool(blocked)
        rule.is_online_only = bool(online_only)
        rule.capacity = capacity
        rule.allow_online = allow_online
        rule.allow_in_person = allow_in_person

    return _upsert(
        db,
        lookup=lambda: db.scalars(select(AppointmentSlotRule).where(AppointmentSlotRule.slot_id == slot_id)).first(),
        build=lambda: AppointmentSlotRule(slot_id=slot_id),
        apply=apply,
    )


def delete_slot_rule(db: Session, slot_id: int) -> None:
    with store_errors(db):
        result = db.execute(delete(AppointmentSlotRule).where(AppointmentSlotRule.slot_id == slot_id))
        db.commit()
    if result.rowcount == 0:
        raise NotFoundError('Slot rule not found.')
