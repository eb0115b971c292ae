"""Read-only views of the ledger for the front desk."""

from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from slotbook.booking import ledger, rule_store, slot_store
from slotbook.booking.identity import UserIdentity, get_user
from slotbook.booking.timeutils import local_today
from slotbook.core.errors import NotFoundError
from slotbook.models.appointment import STATUS_CANCELED, Appointment
from slotbook.models.day_rule import AppointmentDayRule
from slotbook.models.slot import AppointmentSlot
from slotbook.models.slot_rule import AppointmentSlotRule

UNKNOWN_NAME = 'Unknown'


@dataclass(frozen=True)
class AppointmentDetails:
    appointment: Appointment
    user: UserIdentity | None
    slot: AppointmentSlot | None
    day_rule: AppointmentDayRule | None
    slot_rule: AppointmentSlotRule | None


@dataclass(frozen=True)
class DeskAppointment:
    appointment: Appointment
    full_name: str
    phone: str
    user: UserIdentity | None


def appointment_details(db: Session, appointment_id: int) -> AppointmentDetails:
    """One appointment with its owner, its slot and the rules in force for it."""
    appointment = ledger.get_appointment(db, appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found.')

    slot = slot_store.get_slot(db, appointment.slot_id) if appointment.slot_id is not None else None
    return AppointmentDetails(
        appointment=appointment,
        user=get_user(db, appointment.user_id),
        slot=slot,
        day_rule=rule_store.get_day_rule(db, appointment.date_local),
        slot_rule=rule_store.get_slot_rule(db, slot.id) if slot is not None else None,
    )


def todays_appointments(db: Session, today: date | None = None) -> list[DeskAppointment]:
    """Non-cancelled appointments on the local calendar day, earliest first."""
    day = today or local_today()
    appointments = ledger.find_appointments(db, date_from=day, date_to=day)

    desk: list[DeskAppointment] = []
    for appointment in sorted(appointments, key=lambda entry: (entry.start_at_utc, entry.id)):
        if appointment.status == STATUS_CANCELED:
            continue
        user = get_user(db, appointment.user_id)
        desk.append(
            DeskAppointment(
                appointment=appointment,
                full_name=(user.full_name if user else None) or UNKNOWN_NAME,
                phone=(user.phone if user else None) or '',
                user=user,
            )
        )

    return desk
