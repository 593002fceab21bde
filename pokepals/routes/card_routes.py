import json
import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, StrictBool, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pokepals.auth.dependencies import get_current_user
from pokepals.database import get_db
from pokepals.models.card import Card, from_epoch_ms, to_epoch_ms
from pokepals.models.user import User
from pokepals.routes.common import database_unavailable, ensure_database_ready
from pokepals.services import card_pipeline, quota
from pokepals.services.feed_cache import invalidate_public_feed, public_feed_cache
from pokepals.services.gemini import CardGenerationError, CardStats
from pokepals.services.object_storage import (
    ObjectAccessDeniedError,
    ObjectNotFoundError,
    ObjectStorageError,
    ObjectStorageService,
    get_object_storage,
)

router = APIRouter(tags=['cards'])

logger = logging.getLogger(__name__)

UNKNOWN_TRAINER = 'Unknown Trainer'
DEFAULT_FEED_PAGE_SIZE = 20
MAX_FEED_PAGE_SIZE = 50
CARD_NOT_FOUND_DETAIL = 'Card not found or access denied'


class CamelModel(BaseModel):
    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class CardResponse(CamelModel):
    id: str
    original_image: str = ''
    pokemon_image: str
    card_back_image: str = ''
    stats: CardStats
    timestamp: int
    is_public: bool = False


class PublicCardResponse(CardResponse):
    user_id: str
    user: str = UNKNOWN_TRAINER
    likes: int = 0


class PublicFeedResponse(CamelModel):
    items: list[PublicCardResponse]
    next_cursor: str | None = None


class UsageResponse(CamelModel):
    used: int
    limit: int
    remaining: int
    has_reached_limit: bool
    is_admin: bool = False


class CreateCardRequest(CamelModel):
    original_image: str | None = None
    pokemon_image: str | None = None
    card_back_image: str | None = None
    stats: Any = None
    is_public: StrictBool = False


class GenerateCardRequest(CamelModel):
    image: str
    size: Literal['1K', '2K', '4K'] = '1K'
    is_public: StrictBool = False


class UpdateCardRequest(CamelModel):
    is_public: Any = None


class CardImageAclRequest(BaseModel):
    image_url: str = Field(alias='imageURL')
    visibility: Literal['public', 'private'] = 'public'

    class Config:
        populate_by_name = True


def card_fields(card: Card) -> dict:
    return dict(
        id=card.id,
        original_image=card.original_image_url or '',
        pokemon_image=card.pokemon_image_url,
        card_back_image=card.card_back_image_url or '',
        stats=stats_for(card),
        timestamp=to_epoch_ms(card.timestamp),
        is_public=bool(card.is_public),
    )


def serialize_card(card: Card) -> CardResponse:
    return CardResponse(**card_fields(card))


def serialize_public_card(card: Card, trainer_name: str | None) -> PublicCardResponse:
    return PublicCardResponse(
        **card_fields(card),
        user_id=card.user_id,
        user=trainer_name or UNKNOWN_TRAINER,
    )


def stats_for(card: Card) -> CardStats:
    return CardStats(
        name=card.name,
        type=card.type,
        hp=card.hp,
        attack=card.attack,
        defense=card.defense,
        description=card.description,
        moves=list(card.moves or []),
        weakness=card.weakness,
        rarity=card.rarity,
    )


def parse_stats(raw_stats: Any) -> CardStats:
    if isinstance(raw_stats, str):
        try:
            raw_stats = json.loads(raw_stats)
        except json.JSONDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='stats must be valid JSON.',
            ) from exc

    if not isinstance(raw_stats, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='stats is required.',
        )

    try:
        return CardStats.model_validate(raw_stats)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Invalid card stats: {exc.error_count()} error(s).',
        ) from exc


def encode_cursor(card: Card) -> str:
    return f'{to_epoch_ms(card.timestamp)}_{card.id}'


def parse_cursor(cursor: str | None) -> tuple[datetime, str] | None:
    if not cursor:
        return None

    timestamp_part, separator, card_id = cursor.partition('_')
    if not separator or not card_id or not timestamp_part.isdigit():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid feed cursor.',
        )
    return from_epoch_ms(int(timestamp_part)), card_id


def find_owned_card(db: Session, card_id: str, user_id: str) -> Card:
    card = db.query(Card).filter(Card.id == card_id, Card.user_id == user_id).first()
    if card is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CARD_NOT_FOUND_DETAIL)
    return card


def image_in_use(db: Session, image_url: str) -> bool:
    """True when a card or a profile still points at ``image_url``."""
    card_ref = db.query(Card.id).filter(
        or_(
            Card.original_image_url == image_url,
            Card.pokemon_image_url == image_url,
            Card.card_back_image_url == image_url,
        )
    ).first()
    if card_ref is not None:
        return True
    return db.query(User.id).filter(User.profile_image_url == image_url).first() is not None


def query_public_feed(db: Session, cursor: str | None, limit: int) -> PublicFeedResponse:
    position = parse_cursor(cursor)

    query = (
        db.query(Card, User.trainer_name)
        .outerjoin(User, User.id == Card.user_id)
        .filter(Card.is_public.is_(True))
    )
    if position is not None:
        cursor_time, cursor_id = position
        query = query.filter(
            or_(
                Card.timestamp < cursor_time,
                and_(Card.timestamp == cursor_time, Card.id < cursor_id),
            )
        )

    rows = query.order_by(Card.timestamp.desc(), Card.id.desc()).limit(limit + 1).all()
    page = rows[:limit]
    next_cursor = encode_cursor(page[-1][0]) if len(rows) > limit else None

    return PublicFeedResponse(
        items=[serialize_public_card(card, trainer_name) for card, trainer_name in page],
        next_cursor=next_cursor,
    )


@router.get('/usage', response_model=UsageResponse)
def get_usage(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        usage = quota.usage_for(db, current_user)
    except SQLAlchemyError as exc:
        logger.exception('Error fetching usage stats')
        raise database_unavailable() from exc

    logger.debug('Usage for %s: %s', current_user.id, usage)
    return UsageResponse(**usage)


@router.get('/public', response_model=PublicFeedResponse)
def list_public_cards(
    cursor: str | None = Query(default=None),
    limit: int = Query(default=DEFAULT_FEED_PAGE_SIZE, ge=1, le=MAX_FEED_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    cache_key = (cursor or '', limit)
    cached = public_feed_cache.get(cache_key)
    if cached is not None:
        return cached

    ensure_database_ready()

    generation = public_feed_cache.generation
    try:
        feed = query_public_feed(db, cursor, limit)
    except SQLAlchemyError as exc:
        logger.exception('Error fetching public cards')
        raise database_unavailable() from exc

    public_feed_cache.set(cache_key, feed, generation)
    return feed


@router.get('', response_model=list[CardResponse])
def list_my_cards(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        cards = db.query(Card).filter(
            Card.user_id == current_user.id,
        ).order_by(Card.timestamp.desc(), Card.id.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching cards for %s', current_user.id)
        raise database_unavailable() from exc

    logger.debug('Found %d cards for %s', len(cards), current_user.id)
    return [serialize_card(card) for card in cards]


@router.post('', response_model=CardResponse)
def create_card(
    data: CreateCardRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not data.pokemon_image:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='pokemonImage is required.')

    stats = parse_stats(data.stats)
    ensure_database_ready()

    try:
        quota.ensure_within_quota(db, current_user)

        card = card_pipeline.build_card(
            current_user.id,
            stats,
            pokemon_image_url=data.pokemon_image,
            original_image_url=data.original_image or None,
            card_back_image_url=data.card_back_image or None,
            is_public=data.is_public,
        )
        db.add(card)
        db.commit()
        db.refresh(card)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error creating card')
        raise database_unavailable() from exc

    invalidate_public_feed()
    logger.info('Saved card %s for %s', card.id, current_user.id)
    return serialize_card(card)


@router.post('/generate', response_model=CardResponse, status_code=status.HTTP_201_CREATED)
def generate_card(
    data: GenerateCardRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorageService = Depends(get_object_storage),
):
    ensure_database_ready()

    try:
        quota.ensure_within_quota(db, current_user)
    except SQLAlchemyError as exc:
        logger.exception('Error checking quota')
        raise database_unavailable() from exc

    try:
        card = card_pipeline.create_card_from_photo(
            db,
            current_user,
            data.image,
            size=data.size,
            is_public=data.is_public,
            storage=storage,
        )
    except CardGenerationError as exc:
        if exc.stage == 'capture':
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={'message': str(exc), 'stage': exc.stage},
        ) from exc

    return serialize_card(card)


@router.put('/image')
def set_card_image_acl(
    data: CardImageAclRequest,
    current_user: User = Depends(get_current_user),
    storage: ObjectStorageService = Depends(get_object_storage),
):
    try:
        object_path = storage.set_acl(data.image_url, current_user.id, data.visibility)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Object not found') from exc
    except ObjectAccessDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Access denied') from exc

    return {'objectPath': object_path}


@router.delete('/{card_id}')
def delete_card(
    card_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorageService = Depends(get_object_storage),
):
    ensure_database_ready()

    try:
        card = find_owned_card(db, card_id, current_user.id)
        image_refs = [card.original_image_url, card.pokemon_image_url, card.card_back_image_url]
        db.delete(card)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error deleting card %s', card_id)
        raise database_unavailable() from exc

    for image_ref in set(filter(None, image_refs)):
        try:
            if image_in_use(db, image_ref):
                continue
            storage.delete(image_ref, current_user.id)
        except (ObjectStorageError, OSError, SQLAlchemyError):
            logger.warning('Could not remove image %s of deleted card %s', image_ref, card_id, exc_info=True)

    invalidate_public_feed()
    return {'success': True}


@router.patch('/{card_id}')
def update_card(
    card_id: str,
    data: UpdateCardRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not isinstance(data.is_public, bool):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='isPublic must be a boolean')

    ensure_database_ready()

    try:
        card = find_owned_card(db, card_id, current_user.id)
        if card.is_public != data.is_public:
            card.is_public = data.is_public
            db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error updating card %s', card_id)
        raise database_unavailable() from exc

    invalidate_public_feed()
    return {'success': True, 'isPublic': data.is_public}
