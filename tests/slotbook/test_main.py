from datetime import date

import pytest
from fastapi.testclient import TestClient

from slotbook.auth.jwt_handler import create_access_token
from slotbook.core import config
from slotbook.main import app
from slotbook.models.user import User


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'DATABASE_URL', f"sqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setattr(config, 'NOTIFY_WEBHOOK_URL', '')
    with TestClient(app) as test_client:
        session = app.state.database.session()
        try:
            session.add_all(
                [
                    User(email='admin@example.com', full_name='Clinic Admin', role='admin'),
                    User(email='applicant@example.com', full_name='Test Applicant', role='applicant'),
                ]
            )
            session.commit()
        finally:
            session.close()
        yield test_client


def _auth(email: str) -> dict:
    return {'Authorization': f'Bearer {create_access_token(email)}'}


def test_root_reports_status(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert response.json() == {'status': 'Slotbook API Running'}


def test_admin_routes_require_admin_role(client) -> None:
    response = client.get(
        '/admin/slots',
        params={'date_from': '2030-01-07', 'date_to': '2030-01-07'},
        headers=_auth('applicant@example.com'),
    )

    assert response.status_code == 403


def test_generate_then_book_until_full(client) -> None:
    day = date(2030, 1, 7).isoformat()
    generated = client.post(
        '/admin/slots/generate',
        json={'date_from': day, 'date_to': day},
        headers=_auth('admin@example.com'),
    )
    assert generated.status_code == 201
    assert generated.json()['created'] == 16

    slots = client.get('/appointments/slots', params={'date_from': day, 'date_to': day}, headers=_auth('applicant@example.com'))
    first_slot = slots.json()[0]
    assert first_slot['time_local'] == '09:30:00'
    assert first_slot['effective_capacity'] == 3

    for _ in range(3):
        booked = client.post(
            '/appointments/slot-bookings',
            json={'slot_id': first_slot['slot_id'], 'mode': 'online'},
            headers=_auth('applicant@example.com'),
        )
        assert booked.status_code == 201

    rejected = client.post(
        '/appointments/slot-bookings',
        json={'slot_id': first_slot['slot_id'], 'mode': 'online'},
        headers=_auth('applicant@example.com'),
    )
    assert rejected.status_code == 409
    assert rejected.json()['detail']['kind'] == 'capacity_conflict'


def test_blocked_day_rejects_legacy_booking(client) -> None:
    blocked = client.put('/admin/days/2030-01-07', json={'blocked': True}, headers=_auth('admin@example.com'))
    assert blocked.status_code == 200

    response = client.post(
        '/appointments',
        json={'date_local': '2030-01-07', 'time_local': '09:00', 'mode': 'in_person'},
        headers=_auth('applicant@example.com'),
    )

    assert response.status_code == 409
    assert response.json()['detail'] == {'kind': 'blocked', 'message': 'Date is blocked.'}


def test_missing_token_is_rejected(client) -> None:
    response = client.get('/appointments/mine')

    assert response.status_code in (401, 403)


def test_today_view_is_not_shadowed_by_appointment_id_route(client) -> None:
    response = client.get('/admin/appointments/today', headers=_auth('admin@example.com'))

    assert response.status_code == 200
    assert response.json() == []
