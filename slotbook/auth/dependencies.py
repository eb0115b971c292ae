from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from slotbook.auth import jwt_handler
from slotbook.booking.identity import get_user_by_email
from slotbook.core.errors import InfrastructureError
from slotbook.database import get_db
from slotbook.models.user import User

security = HTTPBearer()

ADMIN_ROLE = "admin"


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        user = get_user_by_email(db, email)
    except InfrastructureError as exc:
        raise HTTPException(status_code=503, detail=exc.message) from exc
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if (user.role or "").lower() != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
