from fastapi import Cookie, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pokepals.auth import sessions
from pokepals.core import config
from pokepals.database import get_db
from pokepals.models.user import User


def get_optional_user_id(
    session_token: str | None = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
    db: Session = Depends(get_db),
) -> str | None:
    return sessions.resolve_session(db, session_token)


def get_current_user_id(user_id: str | None = Depends(get_optional_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id


def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
