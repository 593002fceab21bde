import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from pokepals.auth.sessions import purge_expired_sessions
from pokepals.core import config
from pokepals.database import Base, SessionLocal, engine, ensure_card_schema, ensure_user_schema
from pokepals.models import card, session, user  # noqa: F401
from pokepals.routes import auth_routes, card_routes, object_routes, profile_routes, user_routes

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)

logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='PokePals API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_user_schema()
        ensure_card_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')
        return

    db = SessionLocal()
    try:
        purge_expired_sessions(db)
    except SQLAlchemyError:
        logger.exception('Could not purge expired sessions.')
    finally:
        db.close()


@app.get('/health')
def health():
    return {'status': 'ok'}


app.include_router(auth_routes.router, prefix='/api/auth')
app.include_router(profile_routes.router, prefix='/api/profile')
app.include_router(card_routes.router, prefix='/api/cards')
app.include_router(user_routes.router, prefix='/api/users')
app.include_router(object_routes.router, prefix='/api/objects')
app.include_router(object_routes.public_router, prefix='/objects')
