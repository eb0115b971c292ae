"""Booking error taxonomy.

Every rejection the engine can produce has its own class so callers can tell
"slot full" from "slot blocked" from "mode not permitted". Routes turn these
into ``HTTPException`` using ``status_code`` and ``kind``.
"""


class BookingError(Exception):
    """Base class for recoverable booking failures."""

    status_code = 400
    kind = 'booking_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed date, time, range or capacity input."""

    status_code = 400
    kind = 'validation_error'


class BlockedError(BookingError):
    """The day or the slot is administratively closed."""

    status_code = 409
    kind = 'blocked'

    def __init__(self, message: str, scope: str = 'slot'):
        super().__init__(message)
        self.scope = scope


class ModeNotAllowedError(BookingError):
    status_code = 409
    kind = 'mode_not_allowed'


class CapacityConflictError(BookingError):
    status_code = 409
    kind = 'capacity_conflict'


class DuplicateBookingError(BookingError):
    status_code = 409
    kind = 'slot_already_booked'


class NotFoundError(BookingError):
    status_code = 404
    kind = 'not_found'


class PreconditionError(BookingError):
    """The appointment is not in a state that allows the operation."""

    status_code = 409
    kind = 'precondition_failed'


class InfrastructureError(BookingError):
    """Store timeout or connection failure. Safe for the caller to retry."""

    status_code = 503
    kind = 'infrastructure_error'
