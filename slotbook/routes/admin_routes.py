from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import require_admin
from slotbook.booking import admin_views, availability, generation, ledger, rule_store, slot_store
from slotbook.booking.availability import SlotOverview
from slotbook.booking.engine import BookingEngine
from slotbook.booking.timeutils import local_date_of, local_time_of, parse_local_date
from slotbook.core import config
from slotbook.core.errors import BookingError
from slotbook.database import get_db
from slotbook.models.appointment import APPOINTMENT_STATUSES
from slotbook.models.user import User
from slotbook.routes.appointment_routes import AppointmentResponse
from slotbook.routes.common import get_booking_engine, to_http_exception

router = APIRouter(tags=['admin'])


class DayRuleRequest(BaseModel):
    blocked: bool | None = None
    online_only: bool | None = None
    default_capacity: int | None = Field(default=None, ge=0)


class SlotRuleRequest(BaseModel):
    blocked: bool | None = None
    online_only: bool | None = None
    capacity: int | None = Field(default=None, ge=0)
    allow_online: bool | None = None
    allow_in_person: bool | None = None


class UpdateSlotRequest(BaseModel):
    is_active: bool | None = None
    capacity: int | None = Field(default=None, ge=1)
    allow_online: bool | None = None
    allow_in_person: bool | None = None


class GenerateSlotsRequest(BaseModel):
    date_from: date
    date_to: date
    duration_minutes: int = Field(default=config.DEFAULT_SLOT_DURATION_MINUTES, gt=0, le=480)


class UpdateAppointmentStatusRequest(BaseModel):
    status: str
    handled_by_admin_name: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower().replace('-', '_')
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized


class DayRuleResponse(BaseModel):
    id: int
    day_date: date
    is_blocked: bool
    is_online_only: bool
    default_capacity: int | None = None

    class Config:
        from_attributes = True


class SlotRuleResponse(BaseModel):
    id: int
    slot_id: int
    is_blocked: bool
    is_online_only: bool
    capacity: int | None = None
    allow_online: bool | None = None
    allow_in_person: bool | None = None

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    id: int
    start_at: datetime
    end_at: datetime
    is_active: bool
    capacity: int
    allow_online: bool
    allow_in_person: bool

    class Config:
        from_attributes = True


class AdminSlotResponse(BaseModel):
    slot: SlotResponse
    date_local: date
    time_local: time
    day_rule: DayRuleResponse | None = None
    slot_rule: SlotRuleResponse | None = None
    booked_count: int
    effective_blocked: bool
    effective_online_only: bool
    effective_capacity: int
    effective_allow_online: bool
    effective_allow_in_person: bool
    is_available: bool


class GenerateSlotsResponse(BaseModel):
    created: int
    slots: list[SlotResponse]


class UserIdentityResponse(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    phone: str | None = None

    class Config:
        from_attributes = True


class AppointmentDetailsResponse(BaseModel):
    appointment: AppointmentResponse
    user: UserIdentityResponse | None = None
    slot: SlotResponse | None = None
    day_rule: DayRuleResponse | None = None
    slot_rule: SlotRuleResponse | None = None

    class Config:
        from_attributes = True


class TodayAppointmentResponse(BaseModel):
    appointment: AppointmentResponse
    full_name: str
    phone: str
    user: UserIdentityResponse | None = None

    class Config:
        from_attributes = True


def build_admin_slot_response(overview: SlotOverview) -> AdminSlotResponse:
    return AdminSlotResponse(
        slot=SlotResponse.model_validate(overview.slot),
        date_local=local_date_of(overview.slot.start_at),
        time_local=local_time_of(overview.slot.start_at),
        day_rule=DayRuleResponse.model_validate(overview.day_rule) if overview.day_rule else None,
        slot_rule=SlotRuleResponse.model_validate(overview.slot_rule) if overview.slot_rule else None,
        booked_count=overview.booked_count,
        effective_blocked=overview.effective.blocked,
        effective_online_only=overview.effective.online_only,
        effective_capacity=overview.effective.capacity,
        effective_allow_online=overview.effective.allow_online,
        effective_allow_in_person=overview.effective.allow_in_person,
        is_available=overview.is_available,
    )


@router.get('/slots', response_model=list[AdminSlotResponse])
def list_admin_slots(
    date_from: date = Query(...),
    date_to: date = Query(...),
    db: Session = Depends(get_db),
):
    try:
        overview = availability.slot_overview(db, date_from, date_to)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return [build_admin_slot_response(entry) for entry in overview]


@router.post('/slots/generate', response_model=GenerateSlotsResponse, status_code=status.HTTP_201_CREATED)
def generate_slots(data: GenerateSlotsRequest, db: Session = Depends(get_db)):
    try:
        created = generation.generate_slots(db, data.date_from, data.date_to, data.duration_minutes)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return GenerateSlotsResponse(
        created=len(created),
        slots=[SlotResponse.model_validate(slot) for slot in created],
    )


@router.patch('/slots/{slot_id}', response_model=SlotResponse)
def update_slot(slot_id: int, data: UpdateSlotRequest, db: Session = Depends(get_db)):
    try:
        slot = slot_store.update_slot(db, slot_id, **data.model_dump(exclude_none=True))
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return SlotResponse.model_validate(slot)


@router.put('/slots/{slot_id}/rule', response_model=SlotRuleResponse)
def upsert_slot_rule(slot_id: int, data: SlotRuleRequest, db: Session = Depends(get_db)):
    try:
        rule = rule_store.upsert_slot_rule(db, slot_id, **data.model_dump())
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return SlotRuleResponse.model_validate(rule)


@router.delete('/slots/{slot_id}/rule', status_code=status.HTTP_204_NO_CONTENT)
def delete_slot_rule(slot_id: int, db: Session = Depends(get_db)):
    try:
        rule_store.delete_slot_rule(db, slot_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.put('/days/{day}', response_model=DayRuleResponse)
def upsert_day_rule(day: str, data: DayRuleRequest, db: Session = Depends(get_db)):
    try:
        rule = rule_store.upsert_day_rule(db, parse_local_date(day), **data.model_dump())
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return DayRuleResponse.model_validate(rule)


@router.delete('/days/{day}', status_code=status.HTTP_204_NO_CONTENT)
def delete_day_rule(day: str, db: Session = Depends(get_db)):
    try:
        rule_store.delete_day_rule(db, parse_local_date(day))
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        appointments = ledger.find_appointments(
            db,
            status=appointment_status,
            date_from=date_from,
            date_to=date_to,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]


@router.get('/appointments/today', response_model=list[TodayAppointmentResponse])
def list_today_appointments(db: Session = Depends(get_db)):
    try:
        entries = admin_views.todays_appointments(db)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return [TodayAppointmentResponse.model_validate(entry) for entry in entries]


@router.get('/appointments/{appointment_id}', response_model=AppointmentDetailsResponse)
def get_appointment_details(appointment_id: int, db: Session = Depends(get_db)):
    try:
        details = admin_views.appointment_details(db, appointment_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentDetailsResponse.model_validate(details)


@router.patch('/appointments/{appointment_id}', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(get_booking_engine),
):
    try:
        appointment = engine.update_status(
            db,
            appointment_id,
            data.status,
            handled_by_admin_name=data.handled_by_admin_name or admin.full_name,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment)
