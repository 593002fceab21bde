import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pokepals.database import get_db
from pokepals.models.card import Card
from pokepals.models.user import User
from pokepals.routes.card_routes import UNKNOWN_TRAINER, CamelModel, CardResponse, serialize_card
from pokepals.routes.common import database_unavailable

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)


class TrainerProfileResponse(CamelModel):
    id: str
    trainer_name: str


def get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return user


@router.get('/{user_id}', response_model=TrainerProfileResponse)
def get_trainer_profile(user_id: str, db: Session = Depends(get_db)):
    try:
        user = get_user_or_404(db, user_id)
    except SQLAlchemyError as exc:
        logger.exception('Error fetching user profile %s', user_id)
        raise database_unavailable() from exc

    return TrainerProfileResponse(id=user.id, trainer_name=user.trainer_name or UNKNOWN_TRAINER)


@router.get('/{user_id}/cards', response_model=list[CardResponse])
def list_trainer_public_cards(user_id: str, db: Session = Depends(get_db)):
    try:
        get_user_or_404(db, user_id)
        cards = db.query(Card).filter(
            Card.user_id == user_id,
            Card.is_public.is_(True),
        ).order_by(Card.timestamp.desc(), Card.id.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching public cards of %s', user_id)
        raise database_unavailable() from exc

    return [serialize_card(card) for card in cards]
