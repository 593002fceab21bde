from datetime import datetime

import pytest
from fastapi import HTTPException

from pokepals.models.card import Card
from pokepals.services import quota


def _card_at(user, timestamp: datetime) -> Card:
    return Card(
        user_id=user.id,
        pokemon_image_url='/objects/front',
        name='Mon',
        type='Ghost',
        hp=50,
        attack=10,
        defense=10,
        description='Haunts the group chat.',
        moves=['Boo', 'Lurk'],
        weakness='Light',
        rarity='Common',
        timestamp=timestamp,
    )


def test_start_of_month_truncates_to_first_midnight() -> None:
    assert quota.start_of_month(datetime(2026, 10, 18, 15, 30, 12, 999)) == datetime(2026, 10, 1)


def test_monthly_card_count_ignores_previous_months_and_other_users(db, make_user) -> None:
    user = make_user()
    other = make_user(email='gary@pokepals.test')
    db.add_all([
        _card_at(user, datetime(2026, 9, 30, 23, 59)),
        _card_at(user, datetime(2026, 10, 1, 0, 0)),
        _card_at(user, datetime(2026, 10, 17, 8, 0)),
        _card_at(other, datetime(2026, 10, 17, 8, 0)),
    ])
    db.commit()

    assert quota.monthly_card_count(db, user.id, now=datetime(2026, 10, 18)) == 2


def test_usage_for_reports_limit_reached(db, make_user) -> None:
    user = make_user()
    db.add_all([_card_at(user, datetime(2026, 10, 2)) for _ in range(quota.MONTHLY_CARD_LIMIT + 2)])
    db.commit()

    usage = quota.usage_for(db, user, now=datetime(2026, 10, 18))

    assert usage == {
        'used': quota.MONTHLY_CARD_LIMIT + 2,
        'limit': quota.MONTHLY_CARD_LIMIT,
        'remaining': 0,
        'has_reached_limit': True,
        'is_admin': False,
    }


def test_usage_for_admin_is_unlimited(db, make_user) -> None:
    admin = make_user(email='Admin@PokePals.test')

    usage = quota.usage_for(db, admin, now=datetime(2026, 10, 18))

    assert usage['is_admin'] is True
    assert usage['has_reached_limit'] is False
    assert usage['remaining'] == 999999


def test_ensure_within_quota_raises_429_at_limit(db, make_user) -> None:
    user = make_user()
    db.add_all([_card_at(user, datetime(2026, 10, 2)) for _ in range(quota.MONTHLY_CARD_LIMIT)])
    db.commit()

    quota.ensure_within_quota(db, user, now=datetime(2026, 11, 1))

    with pytest.raises(HTTPException) as exception_info:
        quota.ensure_within_quota(db, user, now=datetime(2026, 10, 31))

    assert exception_info.value.status_code == 429
