"""
Booking engine: admission, cancellation and reschedule.

Admission runs the same checks on both booking paths, in order:

1. day block (fail fast on the legacy date/time path)
2. resolve the effective slot configuration
3. blocked or inactive slot
4. in-person requested but not permitted
5. online requested but not permitted
6. recount upcoming occupancy
7. capacity conflict
8. insert the ledger row

Steps 6-8 run inside ``transactions.admission`` so two requests for the same
slot cannot both pass the count before either inserts. Notifications go out
after commit and can never undo a booking.
"""

import logging
from datetime import date, time, timedelta

from sqlalchemy.orm import Session

from slotbook.booking import ledger, rule_store
from slotbook.booking.identity import get_user
from slotbook.booking.notifications import (
    EVENT_BOOKED,
    EVENT_CANCELED,
    EVENT_RESCHEDULED,
    LoggingNotifier,
    Notifier,
)
from slotbook.booking.resolver import EffectiveConfig, resolve
from slotbook.booking.slot_store import find_slot_by_start
from slotbook.booking.timeutils import local_date_of, local_time_of, local_to_utc
from slotbook.booking.transactions import admission, store_errors
from slotbook.core import config
from slotbook.core.errors import (
    BlockedError,
    CapacityConflictError,
    DuplicateBookingError,
    ModeNotAllowedError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from slotbook.models.appointment import (
    APPOINTMENT_MODES,
    MODE_IN_PERSON,
    MODE_ONLINE,
    STATUS_CANCELED,
    STATUS_COMPLETED,
    STATUS_NO_SHOW,
    STATUS_UPCOMING,
    Appointment,
)
from slotbook.models.slot import AppointmentSlot

logger = logging.getLogger(__name__)

ADMIN_STATUS_TRANSITIONS = (STATUS_COMPLETED, STATUS_NO_SHOW, STATUS_CANCELED)


def _run_now(func, *args) -> None:
    func(*args)


def _validate_mode(mode: str) -> None:
    if mode not in APPOINTMENT_MODES:
        raise ValidationError(f'Mode must be one of: {", ".join(APPOINTMENT_MODES)}.')


def _normalize_time(value: time) -> time:
    return value.replace(second=0, microsecond=0, tzinfo=None)


def appointment_payload(appointment: Appointment) -> dict:
    return {
        'id': appointment.id,
        'user_id': appointment.user_id,
        'mode': appointment.mode,
        'status': appointment.status,
        'slot_id': appointment.slot_id,
        'date_local': appointment.date_local.isoformat(),
        'time_local': appointment.time_local.strftime('%H:%M'),
        'start_at_utc': appointment.start_at_utc.isoformat(),
        'end_at_utc': appointment.end_at_utc.isoformat(),
        'note': appointment.note,
    }


class BookingEngine:
    """Admits, cancels and reschedules appointments.

    ``defer`` decides when the notifier runs; the HTTP layer passes
    ``BackgroundTasks.add_task`` so delivery happens after the response.
    """

    def __init__(self, notifier: Notifier | None = None, defer=None):
        self.notifier = notifier or LoggingNotifier()
        self.defer = defer or _run_now

    # -- admission ---------------------------------------------------------

    def _admit_to_slot(
        self,
        db: Session,
        slot: AppointmentSlot,
        mode: str,
        exclude_appointment_id: int | None = None,
    ) -> EffectiveConfig:
        """Run checks 1-7 for a slot. Caller must hold the slot's admission lock."""
        day_rule = rule_store.get_day_rule(db, local_date_of(slot.start_at))
        slot_rule = rule_store.get_slot_rule(db, slot.id)
        effective = resolve(slot, day_rule, slot_rule)

        if not slot.is_active:
            raise BlockedError('Slot is not active.', scope='slot')
        if effective.blocked:
            scope = 'slot' if slot_rule is not None else 'day'
            raise BlockedError('Day is blocked.' if scope == 'day' else 'Slot is blocked.', scope=scope)

        if mode == MODE_IN_PERSON and not effective.allows_mode(MODE_IN_PERSON):
            raise ModeNotAllowedError('In-person appointments are not allowed for this slot.')
        if mode == MODE_ONLINE and not effective.allows_mode(MODE_ONLINE):
            raise ModeNotAllowedError('Online appointments are not allowed for this slot.')

        booked = ledger.occupancy_count(db, slot.id, exclude_appointment_id=exclude_appointment_id)
        if booked >= effective.capacity:
            logger.info('Rejected booking for slot %s: full (%s/%s)', slot.id, booked, effective.capacity)
            raise CapacityConflictError('Slot is full.')

        return effective

    def _check_day_not_blocked(self, db: Session, day: date) -> None:
        day_rule = rule_store.get_day_rule(db, day)
        if day_rule is not None and day_rule.is_blocked:
            raise BlockedError('Date is blocked.', scope='day')

    def book_slot(
        self,
        db: Session,
        user_id: int,
        slot_id: int,
        mode: str,
        survey_response_id: int | None = None,
        note: str | None = None,
    ) -> Appointment:
        _validate_mode(mode)

        with admission(db, slot_id):
            slot = db.get(AppointmentSlot, slot_id, populate_existing=True)
            self._admit_to_slot(db, slot, mode)
            appointment = ledger.insert_appointment(
                db,
                Appointment(
                    user_id=user_id,
                    mode=mode,
                    date_local=local_date_of(slot.start_at),
                    time_local=local_time_of(slot.start_at),
                    start_at_utc=slot.start_at,
                    end_at_utc=slot.end_at,
                    status=STATUS_UPCOMING,
                    slot_id=slot.id,
                    survey_response_id=survey_response_id,
                    note=note,
                ),
            )

        with store_errors(db):
            db.refresh(appointment)
        logger.info('Booked appointment %s on slot %s for user %s (%s)', appointment.id, slot_id, user_id, mode)
        self._dispatch(db, EVENT_BOOKED, appointment)
        return appointment

    def book_raw(
        self,
        db: Session,
        user_id: int,
        date_local: date,
        time_local: time,
        mode: str,
        note: str | None = None,
    ) -> Appointment:
        _validate_mode(mode)
        time_local = _normalize_time(time_local)
        self._check_day_not_blocked(db, date_local)

        start_at = local_to_utc(date_local, time_local)
        end_at = start_at + timedelta(minutes=config.RAW_BOOKING_DURATION_MINUTES)

        with admission(db):
            if ledger.find_conflicting(db, date_local, time_local) is not None:
                raise DuplicateBookingError('Time slot already booked.')
            appointment = ledger.insert_appointment(
                db,
                Appointment(
                    user_id=user_id,
                    mode=mode,
                    date_local=date_local,
                    time_local=time_local,
                    start_at_utc=start_at,
                    end_at_utc=end_at,
                    status=STATUS_UPCOMING,
                    note=note,
                ),
            )

        with store_errors(db):
            db.refresh(appointment)
        logger.info('Booked appointment %s at %s %s for user %s (%s)', appointment.id, date_local, time_local, user_id, mode)
        self._dispatch(db, EVENT_BOOKED, appointment)
        return appointment

    # -- cancellation & reschedule ----------------------------------------

    def _get_owned(self, db: Session, user_id: int, appointment_id: int) -> Appointment:
        appointment = ledger.get_appointment(db, appointment_id)
        if appointment is None or appointment.user_id != user_id:
            raise NotFoundError('Appointment not found.')
        return appointment

    def cancel(self, db: Session, user_id: int, appointment_id: int) -> Appointment:
        appointment = self._get_owned(db, user_id, appointment_id)
        if appointment.status != STATUS_UPCOMING:
            raise PreconditionError('Only upcoming appointments can be cancelled.')

        with store_errors(db):
            moved = ledger.set_status(db, appointment_id, STATUS_CANCELED)
            db.commit()
        if not moved:
            raise PreconditionError('Only upcoming appointments can be cancelled.')

        with store_errors(db):
            db.refresh(appointment)
        logger.info('Cancelled appointment %s for user %s', appointment_id, user_id)
        self._dispatch(db, EVENT_CANCELED, appointment)
        return appointment

    def reschedule(
        self,
        db: Session,
        user_id: int,
        appointment_id: int,
        new_date_local: date,
        new_time_local: time,
    ) -> Appointment:
        """Move an upcoming appointment, keeping its identity.

        The new date/time is admitted exactly like a fresh booking: against the
        slot that starts there when one exists, otherwise on the legacy path.
        On any rejection the appointment is left as it was.
        """
        appointment = self._get_owned(db, user_id, appointment_id)
        if appointment.status != STATUS_UPCOMING:
            raise PreconditionError('Only upcoming appointments can be rescheduled.')

        new_time_local = _normalize_time(new_time_local)
        new_start = local_to_utc(new_date_local, new_time_local)
        target = find_slot_by_start(db, new_start)

        if target is not None:
            with admission(db, target.id):
                current = self._lock_upcoming(db, appointment_id)
                slot = db.get(AppointmentSlot, target.id, populate_existing=True)
                self._admit_to_slot(db, slot, current.mode, exclude_appointment_id=appointment_id)
                current.slot_id = slot.id
                current.date_local = local_date_of(slot.start_at)
                current.time_local = local_time_of(slot.start_at)
                current.start_at_utc = slot.start_at
                current.end_at_utc = slot.end_at
        else:
            self._check_day_not_blocked(db, new_date_local)
            with admission(db):
                current = self._lock_upcoming(db, appointment_id)
                conflict = ledger.find_conflicting(
                    db,
                    new_date_local,
                    new_time_local,
                    exclude_appointment_id=appointment_id,
                )
                if conflict is not None:
                    raise DuplicateBookingError('Time slot already booked.')
                current.slot_id = None
                current.date_local = new_date_local
                current.time_local = new_time_local
                current.start_at_utc = new_start
                current.end_at_utc = new_start + timedelta(minutes=config.RAW_BOOKING_DURATION_MINUTES)

        with store_errors(db):
            db.refresh(current)
        logger.info('Rescheduled appointment %s to %s %s', appointment_id, current.date_local, current.time_local)
        self._dispatch(db, EVENT_RESCHEDULED, current)
        return current

    def _lock_upcoming(self, db: Session, appointment_id: int) -> Appointment:
        current = ledger.get_appointment(db, appointment_id, lock=True)
        if current is None:
            raise NotFoundError('Appointment not found.')
        if current.status != STATUS_UPCOMING:
            raise PreconditionError('Only upcoming appointments can be rescheduled.')
        return current

    def update_status(
        self,
        db: Session,
        appointment_id: int,
        status: str,
        handled_by_admin_name: str | None = None,
    ) -> Appointment:
        """Administrative close-out of an upcoming appointment."""
        if status not in ADMIN_STATUS_TRANSITIONS:
            raise ValidationError(f'Status must be one of: {", ".join(ADMIN_STATUS_TRANSITIONS)}.')

        appointment = ledger.get_appointment(db, appointment_id)
        if appointment is None:
            raise NotFoundError('Appointment not found.')

        with store_errors(db):
            moved = ledger.set_status(db, appointment_id, status)
            if moved and handled_by_admin_name is not None:
                appointment.handled_by_admin_name = handled_by_admin_name
            db.commit()
        if not moved:
            raise PreconditionError('Only upcoming appointments can change status.')

        with store_errors(db):
            db.refresh(appointment)
        logger.info('Appointment %s marked %s', appointment_id, status)
        if status == STATUS_CANCELED:
            self._dispatch(db, EVENT_CANCELED, appointment)
        return appointment

    # -- notifications ----------------------------------------------------

    def _dispatch(self, db: Session, event: str, appointment: Appointment) -> None:
        try:
            payload = appointment_payload(appointment)
            user = get_user(db, appointment.user_id)
            if user is not None:
                payload['user_email'] = user.email
                payload['user_name'] = user.full_name
            self.defer(self.notify, event, payload)
        except Exception:
            logger.exception('Could not queue %s notification for appointment %s', event, appointment.id)

    def notify(self, event: str, payload: dict) -> None:
        try:
            self.notifier.notify(event, payload)
        except Exception:
            logger.exception('Notification %s failed for appointment %s', event, payload.get('id'))
