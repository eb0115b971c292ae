from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import get_current_user
from slotbook.booking import availability, ledger
from slotbook.booking.engine import BookingEngine
from slotbook.core.errors import BookingError
from slotbook.database import get_db
from slotbook.models.user import User
from slotbook.routes.common import get_booking_engine, normalize_mode, normalize_note, to_http_exception

router = APIRouter(tags=['appointments'])


class BookSlotRequest(BaseModel):
    slot_id: int
    mode: str
    survey_response_id: int | None = None
    note: str | None = None

    @field_validator('mode')
    @classmethod
    def validate_mode(cls, value: str) -> str:
        return normalize_mode(value)

    @field_validator('note')
    @classmethod
    def validate_note(cls, value: str | None) -> str | None:
        return normalize_note(value)


class BookRawRequest(BaseModel):
    date_local: date
    time_local: time
    mode: str
    note: str | None = None

    @field_validator('mode')
    @classmethod
    def validate_mode(cls, value: str) -> str:
        return normalize_mode(value)

    @field_validator('time_local')
    @classmethod
    def validate_time_local(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)

    @field_validator('note')
    @classmethod
    def validate_note(cls, value: str | None) -> str | None:
        return normalize_note(value)


class RescheduleRequest(BaseModel):
    date_local: date
    time_local: time

    @field_validator('time_local')
    @classmethod
    def validate_time_local(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class SlotAvailabilityResponse(BaseModel):
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

    class Config:
        from_attributes = True


class OpenTimesResponse(BaseModel):
    date: date
    times: list[str] = Field(default_factory=list)


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    mode: str
    status: str
    date_local: date
    time_local: time
    start_at_utc: datetime
    end_at_utc: datetime
    slot_id: int | None = None
    survey_response_id: int | None = None
    note: str | None = None

    class Config:
        from_attributes = True


@router.get('/slots', response_model=list[SlotAvailabilityResponse])
def list_available_slots(
    date_from: date = Query(...),
    date_to: date = Query(...),
    db: Session = Depends(get_db),
):
    try:
        slots = availability.list_available_slots(db, date_from, date_to)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return [SlotAvailabilityResponse.model_validate(slot) for slot in slots]


@router.get('/open-times', response_model=OpenTimesResponse)
def list_open_times(
    day: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    try:
        times = availability.list_open_times(db, day)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return OpenTimesResponse(date=day, times=[slot_time.strftime('%H:%M') for slot_time in times])


@router.post('/slot-bookings', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_slot(
    data: BookSlotRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
):
    try:
        appointment = engine.book_slot(
            db,
            user_id=user.id,
            slot_id=data.slot_id,
            mode=data.mode,
            survey_response_id=data.survey_response_id,
            note=data.note,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment)


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_raw(
    data: BookRawRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
):
    try:
        appointment = engine.book_raw(
            db,
            user_id=user.id,
            date_local=data.date_local,
            time_local=data.time_local,
            mode=data.mode,
            note=data.note,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment)


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointments = ledger.find_appointments(db, user_id=user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
):
    try:
        appointment = engine.cancel(db, user_id=user.id, appointment_id=appointment_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment)


@router.post('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
):
    try:
        appointment = engine.reschedule(
            db,
            user_id=user.id,
            appointment_id=appointment_id,
            new_date_local=data.date_local,
            new_time_local=data.time_local,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment)
