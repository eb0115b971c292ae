"""Read-only slot listings.

Nothing here takes a lock: a listed slot can fill up before the caller books
it, and the admission check recounts occupancy anyway.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from slotbook.booking import ledger, rule_store, slot_store
from slotbook.booking.resolver import EffectiveConfig, resolve
from slotbook.booking.timeutils import local_date_of, local_time_of, validate_date_range
from slotbook.core import config
from slotbook.models.day_rule import AppointmentDayRule
from slotbook.models.slot import AppointmentSlot
from slotbook.models.slot_rule import AppointmentSlotRule


@dataclass(frozen=True)
class SlotAvailability:
    slot_id: int
    start_at: datetime
    end_at: datetime
    date_local: date
    time_local: time
    effective_capacity: int
    booked_count: int
    effective_online_only: bool
    effective_allow_online: bool
    effective_allow_in_person: bool
    is_available: bool


@dataclass(frozen=True)
class SlotOverview:
    slot: AppointmentSlot
    day_rule: AppointmentDayRule | None
    slot_rule: AppointmentSlotRule | None
    effective: EffectiveConfig
    booked_count: int
    is_available: bool


def _resolve_range(db: Session, slots: list[AppointmentSlot], date_from: date, date_to: date):
    day_rules = rule_store.find_day_rules(db, date_from, date_to)
    slot_ids = [slot.id for slot in slots]
    slot_rules = rule_store.find_slot_rules(db, slot_ids)
    booked_counts = ledger.occupancy_counts(db, slot_ids)

    for slot in slots:
        day_rule = day_rules.get(local_date_of(slot.start_at))
        slot_rule = slot_rules.get(slot.id)
        yield slot, day_rule, slot_rule, resolve(slot, day_rule, slot_rule), booked_counts.get(slot.id, 0)


def list_available_slots(db: Session, date_from: date, date_to: date) -> list[SlotAvailability]:
    validate_date_range(date_from, date_to)
    slots = slot_store.find_slots(db, date_from, date_to, active_only=True)

    available: list[SlotAvailability] = []
    for slot, _day_rule, _slot_rule, effective, booked_count in _resolve_range(db, slots, date_from, date_to):
        if not effective.is_available(booked_count):
            continue
        available.append(
            SlotAvailability(
                slot_id=slot.id,
                start_at=slot.start_at,
                end_at=slot.end_at,
                date_local=local_date_of(slot.start_at),
                time_local=local_time_of(slot.start_at),
                effective_capacity=effective.capacity,
                booked_count=booked_count,
                effective_online_only=effective.online_only,
                effective_allow_online=effective.allow_online,
                effective_allow_in_person=effective.allow_in_person,
                is_available=True,
            )
        )

    return available


def slot_overview(db: Session, date_from: date, date_to: date) -> list[SlotOverview]:
    """Every slot in range, active or not, with its rule layers and resolved config."""
    validate_date_range(date_from, date_to)
    slots = slot_store.find_slots(db, date_from, date_to)

    return [
        SlotOverview(
            slot=slot,
            day_rule=day_rule,
            slot_rule=slot_rule,
            effective=effective,
            booked_count=booked_count,
            is_available=slot.is_active and effective.is_available(booked_count),
        )
        for slot, day_rule, slot_rule, effective, booked_count in _resolve_range(db, slots, date_from, date_to)
    ]


def iterate_open_times(step_minutes: int = config.RAW_BOOKING_DURATION_MINUTES) -> list[time]:
    times: list[time] = []
    current = datetime.combine(date.min, config.OPEN_TIMES_START)
    end = datetime.combine(date.min, config.OPEN_TIMES_END)

    while current < end:
        times.append(current.time())
        current += timedelta(minutes=step_minutes)

    return times


def list_open_times(db: Session, day: date) -> list[time]:
    """Legacy date/time grid for one day, minus times that already hold an upcoming booking."""
    day_rule = rule_store.get_day_rule(db, day)
    if day_rule is not None and day_rule.is_blocked:
        return []

    booked = ledger.booked_times_on(db, day)
    return [slot_time for slot_time in iterate_open_times() if slot_time not in booked]
