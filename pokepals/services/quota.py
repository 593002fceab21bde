"""Monthly card generation quota."""
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from pokepals.core import config
from pokepals.models.card import Card
from pokepals.models.user import User

MONTHLY_CARD_LIMIT = config.MONTHLY_CARD_LIMIT


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_admin(user: User) -> bool:
    return bool(user and user.email and user.email.lower() in config.ADMIN_EMAILS)


def monthly_card_count(db: Session, user_id: str, now: datetime | None = None) -> int:
    month_start = start_of_month(now or _utcnow())
    return db.query(func.count(Card.id)).filter(
        Card.user_id == user_id,
        Card.timestamp >= month_start,
    ).scalar() or 0


def usage_for(db: Session, user: User, now: datetime | None = None) -> dict:
    used = monthly_card_count(db, user.id, now)

    if is_admin(user):
        return {
            'used': used,
            'limit': config.ADMIN_CARD_LIMIT,
            'remaining': config.ADMIN_CARD_LIMIT,
            'has_reached_limit': False,
            'is_admin': True,
        }

    return {
        'used': used,
        'limit': MONTHLY_CARD_LIMIT,
        'remaining': max(0, MONTHLY_CARD_LIMIT - used),
        'has_reached_limit': used >= MONTHLY_CARD_LIMIT,
        'is_admin': False,
    }


def ensure_within_quota(db: Session, user: User, now: datetime | None = None) -> None:
    if is_admin(user):
        return

    used = monthly_card_count(db, user.id, now)
    if used >= MONTHLY_CARD_LIMIT:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                'message': 'Monthly card limit reached',
                'used': used,
                'limit': MONTHLY_CARD_LIMIT,
            },
        )
