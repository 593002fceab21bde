import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pokepals.auth.dependencies import get_current_user
from pokepals.database import get_db
from pokepals.models.user import User
from pokepals.routes.auth_routes import UserResponse, normalize_trainer_name, sanitize_user
from pokepals.routes.common import database_unavailable

router = APIRouter(tags=['profile'])

logger = logging.getLogger(__name__)


class UpdateProfileRequest(BaseModel):
    trainer_name: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator('trainer_name')
    @classmethod
    def validate_trainer_name(cls, value: str | None) -> str | None:
        return normalize_trainer_name(value)


class UpdateProfileImageRequest(BaseModel):
    profile_image_url: Any = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


@router.put('', response_model=UserResponse)
def update_profile(
    data: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        current_user.trainer_name = data.trainer_name
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error updating profile')
        raise database_unavailable() from exc

    return sanitize_user(current_user)


@router.patch('/image', response_model=UserResponse)
def update_profile_image(
    data: UpdateProfileImageRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    image_url = data.profile_image_url
    if not isinstance(image_url, str) or not image_url.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='profileImageUrl is required and must be a string',
        )

    try:
        current_user.profile_image_url = image_url.strip()
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error updating profile image')
        raise database_unavailable() from exc

    return sanitize_user(current_user)
