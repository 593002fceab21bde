from datetime import datetime, timedelta, timezone

import jwt

from pokepals.core import config

SESSION_TOKEN_TYPE = "session"
UPLOAD_TOKEN_TYPE = "upload"


def _encode(payload: dict, expire: datetime) -> str:
    payload = {**payload, "exp": expire, "iat": datetime.now(timezone.utc)}
    return jwt.encode(payload, config.SESSION_SECRET, algorithm=config.SESSION_ALGORITHM)


def create_session_token(sid: str, expire: datetime) -> str:
    if expire.tzinfo is None:
        expire = expire.replace(tzinfo=timezone.utc)
    return _encode({"sid": sid, "typ": SESSION_TOKEN_TYPE}, expire)


def create_upload_token(object_id: str, owner_id: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.UPLOAD_TOKEN_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    return _encode({"sub": owner_id, "oid": object_id, "typ": UPLOAD_TOKEN_TYPE}, expire)


def decode_token(token: str, expected_type: str) -> dict:
    payload = jwt.decode(token, config.SESSION_SECRET, algorithms=[config.SESSION_ALGORITHM])
    if payload.get("typ") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token")
    return payload
