import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pokepals.auth import passwords, sessions
from pokepals.auth.dependencies import get_current_user_id
from pokepals.core import config
from pokepals.database import get_db
from pokepals.models.user import User
from pokepals.routes.common import database_unavailable

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

MAX_TRAINER_NAME_LENGTH = 40


def normalize_trainer_name(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > MAX_TRAINER_NAME_LENGTH:
        raise ValueError(f'Trainer name must be {MAX_TRAINER_NAME_LENGTH} characters or fewer.')
    return normalized


class SignupRequest(BaseModel):
    email: str = ''
    password: str = ''
    trainer_name: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('trainer_name')
    @classmethod
    def validate_trainer_name(cls, value: str | None) -> str | None:
        return normalize_trainer_name(value)


class LoginRequest(BaseModel):
    email: str = ''
    password: str = ''

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserResponse(BaseModel):
    id: str
    email: str
    trainer_name: str | None = None
    profile_image_url: str | None = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


def sanitize_user(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


def start_session(db: Session, response: Response, user: User) -> None:
    token, _ = sessions.open_session(db, user.id)
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=config.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite='lax',
    )


@router.post('/signup', response_model=UserResponse)
def signup(data: SignupRequest, response: Response, db: Session = Depends(get_db)):
    if not data.email or not data.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email and password are required')

    if len(data.password) < passwords.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Password must be at least {passwords.MIN_PASSWORD_LENGTH} characters',
        )

    try:
        existing_user = db.query(User).filter(User.email == data.email).first()
        if existing_user:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email already registered')

        user = User(
            email=data.email,
            password_hash=passwords.hash_password(data.password),
            trainer_name=data.trainer_name,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        start_session(db, response, user)
    except IntegrityError as exc:
        db.rollback()
        logger.info('Concurrent signup for %s', data.email)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email already registered') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Signup failed')
        raise database_unavailable() from exc

    logger.info('Created user %s', user.id)
    return sanitize_user(user)


@router.post('/login', response_model=UserResponse)
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    if not data.email or not data.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email and password are required')

    try:
        user = db.query(User).filter(User.email == data.email).first()
        if user is None or not passwords.verify_password(data.password, user.password_hash):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid email or password')

        start_session(db, response, user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Login failed')
        raise database_unavailable() from exc

    return sanitize_user(user)


@router.post('/logout')
def logout(
    response: Response,
    session_token: str | None = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
    db: Session = Depends(get_db),
):
    try:
        sessions.close_session(db, session_token)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Logout failed')
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='Logout failed') from exc

    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return {'message': 'Logged out successfully'}


@router.get('/user', response_model=UserResponse)
def current_user(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return sanitize_user(user)
