import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from slotbook.booking.slot_store import create_slot, find_slot_by_start
from slotbook.booking.timeutils import iterate_days, local_to_utc, validate_date_range
from slotbook.booking.transactions import store_errors
from slotbook.core import config
from slotbook.core.errors import ValidationError
from slotbook.models.slot import AppointmentSlot

logger = logging.getLogger(__name__)


def iterate_day_windows(day: date, duration_minutes: int) -> list[tuple[datetime, datetime]]:
    """Local back-to-back windows for one day, dropping any that would end past the cutoff."""
    windows: list[tuple[datetime, datetime]] = []
    step = timedelta(minutes=duration_minutes)
    current = datetime.combine(day, config.SLOT_DAY_START)
    cutoff = datetime.combine(day, config.SLOT_DAY_END)

    while current + step <= cutoff:
        windows.append((current, current + step))
        current += step

    return windows


def generate_slots(
    db: Session,
    date_from: date,
    date_to: date,
    duration_minutes: int = config.DEFAULT_SLOT_DURATION_MINUTES,
) -> list[AppointmentSlot]:
    """Create the day's windows for every date in range; existing start instants are skipped.

    Re-running over the same range creates nothing new.
    """
    validate_date_range(date_from, date_to, max_days=config.MAX_GENERATION_DAYS)
    if duration_minutes <= 0:
        raise ValidationError('duration_minutes must be a positive integer.')

    created: list[AppointmentSlot] = []
    skipped = 0

    for day in iterate_days(date_from, date_to):
        for local_start, local_end in iterate_day_windows(day, duration_minutes):
            start_at = local_to_utc(local_start.date(), local_start.time())
            if find_slot_by_start(db, start_at) is not None:
                skipped += 1
                continue

            end_at = local_to_utc(local_end.date(), local_end.time())
            created.append(
                create_slot(
                    db,
                    start_at=start_at,
                    end_at=end_at,
                    capacity=config.DEFAULT_SLOT_CAPACITY,
                    allow_online=True,
                    allow_in_person=True,
                    commit=False,
                )
            )

    with store_errors(db):
        db.commit()
        for slot in created:
            db.refresh(slot)

    logger.info(
        'Generated %s slots between %s and %s (%s already existed)',
        len(created),
        date_from,
        date_to,
        skipped,
    )
    return created
