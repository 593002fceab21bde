from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from pokepals.core import config


DATABASE_URL = config.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_user_schema_checked = False
_card_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_user_schema() -> None:
    global _user_schema_checked

    if _user_schema_checked:
        return

    with _schema_lock:
        if _user_schema_checked:
            return

        inspector = inspect(engine)

        if 'users' not in inspector.get_table_names():
            _user_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('users')}
        migration_steps = [
            ('first_name', 'ALTER TABLE users ADD COLUMN first_name VARCHAR'),
            ('last_name', 'ALTER TABLE users ADD COLUMN last_name VARCHAR'),
            ('trainer_name', 'ALTER TABLE users ADD COLUMN trainer_name VARCHAR'),
            ('profile_image_url', 'ALTER TABLE users ADD COLUMN profile_image_url TEXT'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))

        _user_schema_checked = True


def ensure_card_schema() -> None:
    global _card_schema_checked

    if _card_schema_checked:
        return

    with _schema_lock:
        if _card_schema_checked:
            return

        inspector = inspect(engine)

        if 'cards' not in inspector.get_table_names():
            _card_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('cards')}
        migration_steps = [
            ('original_image_url', 'ALTER TABLE cards ADD COLUMN original_image_url VARCHAR'),
            ('card_back_image_url', 'ALTER TABLE cards ADD COLUMN card_back_image_url VARCHAR'),
            ('is_public', 'ALTER TABLE cards ADD COLUMN is_public BOOLEAN DEFAULT FALSE'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_cards_public_timestamp ON cards(is_public, timestamp)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_cards_user_timestamp ON cards(user_id, timestamp)')
            )

        _card_schema_checked = True
