"""Server-side login session definitions."""

from sqlalchemy import JSON, Column, DateTime, String
from pokepals.database import Base


class Session(Base):
    """Represents a login session referenced by the session cookie."""
    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)
    sess = Column(JSON, nullable=False)
    expire = Column(DateTime, nullable=False, index=True)
