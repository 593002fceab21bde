"""Card model definitions."""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from pokepals.database import Base

RARITIES = ("Common", "Rare", "Legendary", "Exotic")


def card_timestamp() -> datetime:
    # Millisecond precision so feed cursors round-trip exactly.
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


EPOCH = datetime(1970, 1, 1)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=value)


class Card(Base):
    """Represents a generated collectible owned by a single user."""
    __tablename__ = "cards"
    __table_args__ = (
        Index("idx_cards_public_timestamp", "is_public", "timestamp"),
        Index("idx_cards_user_timestamp", "user_id", "timestamp"),
    )

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    original_image_url = Column(String)
    pokemon_image_url = Column(String, nullable=False)
    card_back_image_url = Column(String)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    hp = Column(Integer, nullable=False)
    attack = Column(Integer, nullable=False)
    defense = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    moves = Column(JSON, nullable=False)
    weakness = Column(String, nullable=False)
    rarity = Column(String, nullable=False)
    is_public = Column(Boolean, default=False)
    timestamp = Column(DateTime, default=card_timestamp, index=True)
