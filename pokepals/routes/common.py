from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from pokepals.database import ensure_card_schema, ensure_user_schema

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_user_schema()
        ensure_card_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
