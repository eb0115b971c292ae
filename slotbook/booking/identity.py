from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotbook.booking.transactions import store_errors
from slotbook.models.user import User


@dataclass(frozen=True)
class UserIdentity:
    id: int
    email: str
    full_name: str | None
    phone: str | None = None


def _to_identity(user: User | None) -> UserIdentity | None:
    if user is None:
        return None
    return UserIdentity(id=user.id, email=user.email, full_name=user.full_name, phone=user.phone)


def get_user(db: Session, user_id: int) -> UserIdentity | None:
    with store_errors(db):
        return _to_identity(db.get(User, user_id))


def get_user_by_email(db: Session, email: str) -> User | None:
    normalized = email.strip().lower()
    with store_errors(db):
        return db.scalars(select(User).where(User.email == normalized)).first()
