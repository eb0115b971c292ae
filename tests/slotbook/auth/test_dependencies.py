import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from slotbook.auth.dependencies import get_current_user, require_admin
from slotbook.auth.jwt_handler import create_access_token, decode_access_token


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trips_subject_and_role() -> None:
    payload = decode_access_token(create_access_token('admin@example.com', role='admin'))

    assert payload['sub'] == 'admin@example.com'
    assert payload['role'] == 'admin'


def test_get_current_user_resolves_token_subject(db, make_user) -> None:
    user = make_user('applicant@example.com')

    resolved = get_current_user(_credentials(create_access_token(' APPLICANT@Example.com ')), db=db)

    assert resolved.id == user.id


def test_get_current_user_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials('not-a-token'), db=db)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_expired_token(db, make_user) -> None:
    make_user()
    token = create_access_token('applicant@example.com', expires_minutes=-5)

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials(token), db=db)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_unknown_user(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials(create_access_token('ghost@example.com')), db=db)

    assert exception_info.value.detail == 'User not found'


def test_require_admin_allows_admin_role(make_user) -> None:
    admin = make_user('admin@example.com', role='Admin')

    assert require_admin(admin) is admin


def test_require_admin_rejects_applicant(make_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        require_admin(make_user())

    assert exception_info.value.status_code == 403
