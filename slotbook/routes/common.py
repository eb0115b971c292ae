from fastapi import BackgroundTasks, HTTPException, Request

from slotbook.booking.engine import BookingEngine
from slotbook.core.errors import BookingError
from slotbook.models.appointment import APPOINTMENT_MODES

MAX_APPOINTMENT_NOTES_LENGTH = 600


def to_http_exception(exc: BookingError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={'kind': exc.kind, 'message': exc.message},
    )


def get_booking_engine(request: Request, background_tasks: BackgroundTasks) -> BookingEngine:
    return BookingEngine(notifier=request.app.state.notifier, defer=background_tasks.add_task)


def normalize_mode(value: str) -> str:
    normalized = value.strip().lower().replace('-', '_')
    if normalized not in APPOINTMENT_MODES:
        raise ValueError('Mode must be in_person or online.')
    return normalized


def normalize_note(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized
