from datetime import date, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from slotbook.booking import admin_views
from slotbook.booking.engine import BookingEngine
from slotbook.routes.admin_routes import (
    DayRuleRequest,
    GenerateSlotsRequest,
    SlotRuleRequest,
    UpdateAppointmentStatusRequest,
    UpdateSlotRequest,
    delete_day_rule,
    delete_slot_rule,
    generate_slots,
    get_appointment_details,
    list_admin_slots,
    list_appointments,
    list_today_appointments,
    update_appointment_status,
    update_slot,
    upsert_day_rule,
    upsert_slot_rule,
)

BOOKING_DAY = date(2030, 1, 7)


@pytest.fixture
def engine(notifier):
    return BookingEngine(notifier=notifier)


def test_generate_slots_request_rejects_non_positive_duration() -> None:
    with pytest.raises(ValidationError):
        GenerateSlotsRequest(date_from=BOOKING_DAY, date_to=BOOKING_DAY, duration_minutes=0)


def test_day_rule_request_rejects_negative_capacity() -> None:
    with pytest.raises(ValidationError):
        DayRuleRequest(default_capacity=-1)


def test_update_status_request_normalizes_status() -> None:
    request = UpdateAppointmentStatusRequest(status=' No-Show ')

    assert request.status == 'no_show'


def test_generate_slots_route_reports_created_count(db) -> None:
    response = generate_slots(GenerateSlotsRequest(date_from=BOOKING_DAY, date_to=BOOKING_DAY), db=db)

    assert response.created == 16
    assert len(response.slots) == 16


def test_generate_slots_route_maps_oversized_range_to_400(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        generate_slots(GenerateSlotsRequest(date_from=BOOKING_DAY, date_to=date(2031, 1, 7)), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['kind'] == 'validation_error'


def test_upsert_day_rule_route_parses_path_date(db) -> None:
    response = upsert_day_rule('2030-01-07', DayRuleRequest(blocked=True), db=db)

    assert response.day_date == BOOKING_DAY
    assert response.is_blocked is True
    assert response.default_capacity is None


def test_upsert_day_rule_route_rejects_bad_date(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        upsert_day_rule('07/01/2030', DayRuleRequest(blocked=True), db=db)

    assert exception_info.value.status_code == 400


def test_delete_day_rule_route_maps_missing_rule_to_404(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        delete_day_rule('2030-01-07', db=db)

    assert exception_info.value.status_code == 404


def test_slot_rule_routes_round_trip(db, make_slot) -> None:
    slot = make_slot()

    response = upsert_slot_rule(slot.id, SlotRuleRequest(blocked=True, capacity=1), db=db)
    delete_slot_rule(slot.id, db=db)

    assert response.slot_id == slot.id
    assert response.is_blocked is True
    assert response.allow_online is None
    with pytest.raises(HTTPException) as exception_info:
        delete_slot_rule(slot.id, db=db)
    assert exception_info.value.status_code == 404


def test_update_slot_route_applies_given_fields(db, make_slot) -> None:
    slot = make_slot(capacity=3)

    response = update_slot(slot.id, UpdateSlotRequest(is_active=False), db=db)

    assert response.is_active is False
    assert response.capacity == 3


def test_list_admin_slots_route_shows_layers_and_effective_values(db, make_slot) -> None:
    slot = make_slot(capacity=4)
    upsert_day_rule('2030-01-07', DayRuleRequest(default_capacity=2), db=db)
    upsert_slot_rule(slot.id, SlotRuleRequest(allow_online=False), db=db)

    [entry] = list_admin_slots(date_from=BOOKING_DAY, date_to=BOOKING_DAY, db=db)

    assert entry.slot.id == slot.id
    assert entry.time_local == time(10, 0)
    assert entry.day_rule.default_capacity == 2
    assert entry.slot_rule.allow_online is False
    assert entry.effective_capacity == 2
    assert entry.effective_allow_online is False
    assert entry.is_available is True


def test_list_appointments_route_filters_by_status(db, engine, make_user, make_slot) -> None:
    user = make_user()
    slot = make_slot()
    kept = engine.book_slot(db, user.id, slot.id, 'online')
    dropped = engine.book_slot(db, user.id, slot.id, 'online')
    engine.cancel(db, user.id, dropped.id)

    response = list_appointments(appointment_status='upcoming', date_from=None, date_to=None, db=db)

    assert [entry.id for entry in response] == [kept.id]


def test_update_appointment_status_route_defaults_admin_name(db, engine, make_user, make_slot) -> None:
    admin = make_user('admin@example.com', role='admin', full_name='Clinic Admin')
    user = make_user()
    appointment = engine.book_slot(db, user.id, make_slot().id, 'online')

    response = update_appointment_status(
        appointment.id,
        UpdateAppointmentStatusRequest(status='completed'),
        admin=admin,
        db=db,
        engine=engine,
    )

    assert response.status == 'completed'
    assert appointment.handled_by_admin_name == 'Clinic Admin'


def test_update_appointment_status_route_rejects_upcoming(db, engine, make_user, make_slot) -> None:
    admin = make_user('admin@example.com', role='admin')
    user = make_user()
    appointment = engine.book_slot(db, user.id, make_slot().id, 'online')

    with pytest.raises(HTTPException) as exception_info:
        update_appointment_status(
            appointment.id,
            UpdateAppointmentStatusRequest(status='upcoming'),
            admin=admin,
            db=db,
            engine=engine,
        )

    assert exception_info.value.status_code == 400


def test_appointment_details_route_includes_user_and_slot(db, engine, make_user, make_slot) -> None:
    user = make_user(full_name='Rana Haddad')
    slot = make_slot()
    appointment = engine.book_slot(db, user.id, slot.id, 'in_person')

    response = get_appointment_details(appointment.id, db=db)

    assert response.appointment.id == appointment.id
    assert response.user.full_name == 'Rana Haddad'
    assert response.user.phone == '0790000000'
    assert response.slot.id == slot.id
    assert response.slot_rule is None


def test_appointment_details_route_maps_missing_to_404(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment_details(404, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail['kind'] == 'not_found'


def test_today_route_lists_desk_entries(db, engine, make_user, monkeypatch) -> None:
    user = make_user(full_name='Rana Haddad')
    appointment = engine.book_raw(db, user.id, BOOKING_DAY, time(9, 30), 'in_person')
    monkeypatch.setattr(admin_views, 'local_today', lambda: BOOKING_DAY)

    response = list_today_appointments(db=db)

    assert [entry.appointment.id for entry in response] == [appointment.id]
    assert response[0].full_name == 'Rana Haddad'
    assert response[0].phone == '0790000000'
