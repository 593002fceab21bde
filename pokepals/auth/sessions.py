"""Server-side sessions.

The cookie holds a signed token naming a row in the ``sessions`` table, so a
logout (or an expired row) revokes the cookie even while its signature is
still valid.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.orm import Session as DbSession

from pokepals.auth import jwt_handler
from pokepals.core import config
from pokepals.models.session import Session

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def open_session(db: DbSession, user_id: str, ttl: timedelta | None = None) -> tuple[str, datetime]:
    """Create a session row for ``user_id`` and return its cookie token and expiry."""
    expire = _now() + (ttl or timedelta(days=config.SESSION_TTL_DAYS))
    sid = secrets.token_urlsafe(32)
    db.add(Session(sid=sid, sess={"user_id": user_id}, expire=expire))
    db.commit()
    return jwt_handler.create_session_token(sid, expire), expire


def _sid_from_token(token: str | None) -> str | None:
    if not token:
        return None
    try:
        payload = jwt_handler.decode_token(token, jwt_handler.SESSION_TOKEN_TYPE)
    except jwt.PyJWTError:
        return None
    return payload.get("sid")


def resolve_session(db: DbSession, token: str | None) -> str | None:
    """Return the user id bound to a live session, or None."""
    sid = _sid_from_token(token)
    if sid is None:
        return None

    session = db.query(Session).filter(Session.sid == sid).first()
    if session is None:
        return None
    if session.expire <= _now():
        db.delete(session)
        db.commit()
        return None
    return (session.sess or {}).get("user_id")


def close_session(db: DbSession, token: str | None) -> bool:
    sid = _sid_from_token(token)
    if sid is None:
        return False
    deleted = db.query(Session).filter(Session.sid == sid).delete()
    db.commit()
    return bool(deleted)


def purge_expired_sessions(db: DbSession) -> int:
    deleted = db.query(Session).filter(Session.expire <= _now()).delete()
    db.commit()
    if deleted:
        logger.info('Purged %d expired sessions', deleted)
    return deleted
