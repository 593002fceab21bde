import os

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('SESSION_SECRET', 'test-secret')
os.environ.setdefault('ADMIN_EMAILS', 'admin@pokepals.test')
os.environ.setdefault('PUBLIC_BASE_URL', 'http://testserver')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from pokepals.auth import passwords  # noqa: E402
from pokepals.database import Base  # noqa: E402
from pokepals.models.card import Card  # noqa: E402
from pokepals.models.session import Session  # noqa: E402
from pokepals.models.user import User  # noqa: E402
from pokepals.services.feed_cache import public_feed_cache  # noqa: E402
from pokepals.services.object_storage import ObjectStorageService  # noqa: E402


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(passwords, 'SALT_ROUNDS', 4)


@pytest.fixture(autouse=True)
def empty_feed_cache():
    public_feed_cache.clear()
    yield
    public_feed_cache.clear()


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, Card.__table__, Session.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def storage(tmp_path):
    return ObjectStorageService(tmp_path / 'objects')


@pytest.fixture
def make_user(db):
    def _make_user(email: str = 'ash@pokepals.test', trainer_name: str | None = 'Ash', password: str = 'pikachu123'):
        user = User(email=email, password_hash=passwords.hash_password(password), trainer_name=trainer_name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


def cookie_value(response, name: str = 'pokepals_session') -> str | None:
    for header, value in response.raw_headers:
        if header.decode('latin-1').lower() != 'set-cookie':
            continue
        cookie = value.decode('latin-1')
        key, _, rest = cookie.partition('=')
        if key == name:
            return rest.split(';', 1)[0].strip('"')
    return None


@pytest.fixture
def session_cookie():
    return cookie_value
