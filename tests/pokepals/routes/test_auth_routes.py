import pytest
from fastapi import HTTPException, Response
from pydantic import ValidationError

from pokepals.auth import sessions
from pokepals.models.user import User
from pokepals.routes.auth_routes import (
    LoginRequest,
    SignupRequest,
    current_user,
    login,
    logout,
    signup,
)


def test_signup_request_normalizes_email_and_trainer_name() -> None:
    request = SignupRequest.model_validate(
        {'email': ' Misty@Cerulean.GYM ', 'password': 'starmie99', 'trainerName': '  Misty  '}
    )

    assert request.email == 'misty@cerulean.gym'
    assert request.trainer_name == 'Misty'


def test_signup_request_rejects_long_trainer_name() -> None:
    with pytest.raises(ValidationError):
        SignupRequest(email='a@b.c', password='password1', trainer_name='x' * 41)


def test_signup_creates_user_and_opens_session(db, session_cookie) -> None:
    response = Response()

    result = signup(
        data=SignupRequest(email='brock@pewter.gym', password='onix-rocks', trainer_name='Brock'),
        response=response,
        db=db,
    )

    stored = db.query(User).filter(User.email == 'brock@pewter.gym').one()
    assert result.id == stored.id
    assert result.trainer_name == 'Brock'
    assert stored.password_hash != 'onix-rocks'
    assert 'password_hash' not in result.model_dump()

    token = session_cookie(response)
    assert sessions.resolve_session(db, token) == stored.id


@pytest.mark.parametrize(
    ('email', 'password', 'detail'),
    [
        ('', 'password1', 'Email and password are required'),
        ('a@b.c', '', 'Email and password are required'),
        ('a@b.c', 'short', 'Password must be at least 8 characters'),
    ],
)
def test_signup_validates_credentials(db, email: str, password: str, detail: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        signup(data=SignupRequest(email=email, password=password), response=Response(), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == detail


def test_signup_rejects_duplicate_email(db, make_user) -> None:
    make_user(email='ash@pokepals.test')

    with pytest.raises(HTTPException) as exception_info:
        signup(
            data=SignupRequest(email='ASH@pokepals.test', password='password1'),
            response=Response(),
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Email already registered'


def test_signup_race_on_same_email_returns_400(db, make_user, monkeypatch) -> None:
    make_user(email='gary@pallet.town')
    real_query = db.query
    lookups = []

    class _MissedLookup:
        def filter(self, *_args):
            return self

        def first(self):
            return None

    def query_missing_first_lookup(*entities):
        if not lookups:
            lookups.append(entities)
            return _MissedLookup()
        return real_query(*entities)

    monkeypatch.setattr(db, 'query', query_missing_first_lookup)

    with pytest.raises(HTTPException) as exception_info:
        signup(
            data=SignupRequest(email='gary@pallet.town', password='eevee-rival'),
            response=Response(),
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Email already registered'
    assert real_query(User).filter(User.email == 'gary@pallet.town').count() == 1


def test_login_with_valid_credentials_sets_cookie(db, make_user, session_cookie) -> None:
    user = make_user(password='pikachu123')
    response = Response()

    result = login(data=LoginRequest(email='ash@pokepals.test', password='pikachu123'), response=response, db=db)

    assert result.id == user.id
    assert sessions.resolve_session(db, session_cookie(response)) == user.id


@pytest.mark.parametrize(
    ('email', 'password'),
    [
        ('ash@pokepals.test', 'wrong-password'),
        ('nobody@pokepals.test', 'pikachu123'),
    ],
)
def test_login_rejects_bad_credentials(db, make_user, email: str, password: str) -> None:
    make_user(password='pikachu123')

    with pytest.raises(HTTPException) as exception_info:
        login(data=LoginRequest(email=email, password=password), response=Response(), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid email or password'


def test_logout_revokes_session_and_clears_cookie(db, make_user, session_cookie) -> None:
    user = make_user()
    token, _ = sessions.open_session(db, user.id)
    response = Response()

    result = logout(response=response, session_token=token, db=db)

    assert result == {'message': 'Logged out successfully'}
    assert sessions.resolve_session(db, token) is None
    assert session_cookie(response) == ''


def test_logout_without_session_succeeds(db) -> None:
    assert logout(response=Response(), session_token=None, db=db) == {'message': 'Logged out successfully'}


def test_current_user_returns_sanitized_user(db, make_user) -> None:
    user = make_user(trainer_name='Ash')

    result = current_user(user_id=user.id, db=db)

    assert result.model_dump(by_alias=True) == {
        'id': user.id,
        'email': 'ash@pokepals.test',
        'trainerName': 'Ash',
        'profileImageUrl': None,
    }


def test_current_user_returns_404_when_user_vanished(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        current_user(user_id='ghost', db=db)

    assert exception_info.value.status_code == 404
