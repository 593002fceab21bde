from datetime import datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException

from pokepals.auth import jwt_handler, passwords, sessions
from pokepals.auth.dependencies import get_current_user, get_current_user_id
from pokepals.core import config
from pokepals.models.session import Session


def test_hash_password_round_trips_and_rejects_wrong_password() -> None:
    password_hash = passwords.hash_password('correct horse')

    assert password_hash != 'correct horse'
    assert passwords.verify_password('correct horse', password_hash)
    assert not passwords.verify_password('wrong horse', password_hash)


@pytest.mark.parametrize('stored_hash', [None, '', 'not-a-bcrypt-hash'])
def test_verify_password_rejects_missing_or_malformed_hash(stored_hash) -> None:
    assert not passwords.verify_password('anything', stored_hash)


def test_open_session_resolves_to_user(db, make_user) -> None:
    user = make_user()

    token, expire = sessions.open_session(db, user.id)

    assert expire > datetime.utcnow() + timedelta(days=config.SESSION_TTL_DAYS - 1)
    assert sessions.resolve_session(db, token) == user.id


def test_close_session_revokes_token(db, make_user) -> None:
    user = make_user()
    token, _ = sessions.open_session(db, user.id)

    assert sessions.close_session(db, token) is True
    assert sessions.resolve_session(db, token) is None
    assert db.query(Session).count() == 0


def test_expired_session_row_is_dropped(db, make_user) -> None:
    user = make_user()
    token, _ = sessions.open_session(db, user.id)
    row = db.query(Session).one()
    row.expire = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    assert sessions.resolve_session(db, token) is None
    assert db.query(Session).count() == 0


@pytest.mark.parametrize('token', [None, '', 'garbage', 'a.b.c'])
def test_resolve_session_ignores_invalid_tokens(db, token) -> None:
    assert sessions.resolve_session(db, token) is None


def test_resolve_session_rejects_upload_tokens(db, make_user) -> None:
    user = make_user()
    upload_token = jwt_handler.create_upload_token('0' * 32, user.id)

    assert sessions.resolve_session(db, upload_token) is None


def test_resolve_session_rejects_foreign_signature(db, make_user) -> None:
    user = make_user()
    token, _ = sessions.open_session(db, user.id)
    sid = jwt_handler.decode_token(token, jwt_handler.SESSION_TOKEN_TYPE)['sid']
    forged = jwt.encode({'sid': sid, 'typ': 'session'}, 'another-secret', algorithm='HS256')

    assert sessions.resolve_session(db, forged) is None


def test_purge_expired_sessions_keeps_live_rows(db, make_user) -> None:
    user = make_user()
    sessions.open_session(db, user.id)
    sessions.open_session(db, user.id, ttl=timedelta(seconds=-1))

    assert sessions.purge_expired_sessions(db) == 1
    assert db.query(Session).count() == 1


def test_get_current_user_id_requires_session() -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user_id(user_id=None)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Unauthorized'


def test_get_current_user_returns_404_for_deleted_user(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(user_id='missing', db=db)

    assert exception_info.value.status_code == 404


def test_get_current_user_loads_user(db, make_user) -> None:
    user = make_user()

    assert get_current_user(user_id=user.id, db=db).email == user.email
