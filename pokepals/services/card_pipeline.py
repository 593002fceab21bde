"""Photo to persisted card: stats, front and back art, uploads, then the database row."""
import logging
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pokepals.models.card import Card
from pokepals.models.user import User
from pokepals.services import gemini
from pokepals.services.feed_cache import invalidate_public_feed
from pokepals.services.gemini import CardGenerationError, CardStats
from pokepals.services.images import InvalidImageError, normalize_photo
from pokepals.services.object_storage import ObjectStorageError, ObjectStorageService, get_object_storage

logger = logging.getLogger(__name__)


def build_card(
    user_id: str,
    stats: CardStats,
    pokemon_image_url: str,
    original_image_url: str | None = None,
    card_back_image_url: str | None = None,
    is_public: bool = False,
) -> Card:
    return Card(
        user_id=user_id,
        original_image_url=original_image_url,
        pokemon_image_url=pokemon_image_url,
        card_back_image_url=card_back_image_url,
        name=stats.name,
        type=stats.type,
        hp=stats.hp,
        attack=stats.attack,
        defense=stats.defense,
        description=stats.description,
        moves=list(stats.moves),
        weakness=stats.weakness,
        rarity=stats.rarity,
        is_public=is_public,
    )


def generate_card_art(photo_data_url: str, stats: CardStats, size: str) -> tuple[str, str | None]:
    """Render front and back concurrently. A missing front is fatal; a missing back is not."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        front_future = executor.submit(gemini.generate_card_front, photo_data_url, stats, size)
        back_future = executor.submit(gemini.generate_card_back, stats)
        front_image = front_future.result()
        back_image = back_future.result()

    if not front_image:
        raise CardGenerationError('front', 'Failed to generate card art')
    return front_image, back_image


def discard_objects(storage: ObjectStorageService, owner_id: str, paths: list[str | None]) -> None:
    """Remove objects stored for a card that was never saved."""
    for path in paths:
        if not path:
            continue
        try:
            storage.delete(path, owner_id)
        except (ObjectStorageError, OSError):
            logger.warning('Could not remove orphaned object %s', path, exc_info=True)


def create_card_from_photo(
    db: Session,
    user: User,
    image_data_url: str,
    size: str = '1K',
    is_public: bool = False,
    storage: ObjectStorageService | None = None,
) -> Card:
    storage = storage or get_object_storage()

    try:
        photo_data_url, _ = normalize_photo(image_data_url)
    except InvalidImageError as exc:
        raise CardGenerationError('capture', str(exc)) from exc

    logger.info('Generating stats for user %s', user.id)
    stats = gemini.generate_card_stats(photo_data_url)

    logger.info('Generating %s card art for "%s" (%s)', size, stats.name, stats.rarity)
    front_image, back_image = generate_card_art(photo_data_url, stats, size)

    visibility = 'public' if is_public else 'private'
    saved_paths = []
    try:
        for data_url in (photo_data_url, front_image, back_image):
            saved_paths.append(storage.save_data_url(user.id, data_url, visibility) if data_url else None)
    except (ObjectStorageError, InvalidImageError, OSError) as exc:
        logger.exception('Failed to upload card images for user %s', user.id)
        discard_objects(storage, user.id, saved_paths)
        raise CardGenerationError('upload', 'Failed to upload card images') from exc

    original_path, front_path, back_path = saved_paths
    card = build_card(
        user.id,
        stats,
        pokemon_image_url=front_path,
        original_image_url=original_path,
        card_back_image_url=back_path,
        is_public=is_public,
    )
    try:
        db.add(card)
        db.commit()
        db.refresh(card)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to persist generated card for user %s', user.id)
        discard_objects(storage, user.id, saved_paths)
        raise CardGenerationError('persist', 'Failed to save card') from exc

    invalidate_public_feed()
    logger.info('Created card %s for user %s', card.id, user.id)
    return card
