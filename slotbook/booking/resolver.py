"""Effective slot configuration.

A slot's bookable attributes come from three layers, most specific first:
the slot rule, the day rule, then the slot itself. ``resolve`` is the only
place that precedence lives; the listing endpoints and the admission check
both go through it.
"""

from dataclasses import dataclass

from slotbook.models.appointment import MODE_IN_PERSON, MODE_ONLINE
from slotbook.models.day_rule import AppointmentDayRule
from slotbook.models.slot import AppointmentSlot
from slotbook.models.slot_rule import AppointmentSlotRule


@dataclass(frozen=True)
class EffectiveConfig:
    blocked: bool
    online_only: bool
    capacity: int
    allow_online: bool
    allow_in_person: bool

    def allows_mode(self, mode: str) -> bool:
        if mode == MODE_IN_PERSON:
            return not self.online_only and self.allow_in_person
        if mode == MODE_ONLINE:
            return self.allow_online
        return False

    def is_available(self, booked_count: int) -> bool:
        return not self.blocked and booked_count < self.capacity


def first_defined(*layers):
    """Return the first layer value that is not None, or None."""
    for value in layers:
        if value is not None:
            return value
    return None


def resolve(
    slot: AppointmentSlot,
    day_rule: AppointmentDayRule | None = None,
    slot_rule: AppointmentSlotRule | None = None,
) -> EffectiveConfig:
    def from_slot_rule(field: str):
        return getattr(slot_rule, field) if slot_rule is not None else None

    def from_day_rule(field: str):
        return getattr(day_rule, field) if day_rule is not None else None

    return EffectiveConfig(
        blocked=bool(first_defined(from_slot_rule('is_blocked'), from_day_rule('is_blocked'), False)),
        online_only=bool(first_defined(from_slot_rule('is_online_only'), from_day_rule('is_online_only'), False)),
        capacity=int(first_defined(from_slot_rule('capacity'), from_day_rule('default_capacity'), slot.capacity)),
        # Allow flags skip the day layer: only online_only is day-aware.
        allow_online=bool(first_defined(from_slot_rule('allow_online'), slot.allow_online)),
        allow_in_person=bool(first_defined(from_slot_rule('allow_in_person'), slot.allow_in_person)),
    )
