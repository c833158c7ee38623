"""Database module for Care Sync Service.

The local Record Store keeps one row per scoped key. Each row holds a whole
record collection (tasks or diary entries) as a JSON document, mirroring the
key-value storage the mobile app writes to.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings

# SQLAlchemy Base
Base = declarative_base()


class StoredCollection(Base):
    """One serialized record collection under a (possibly user-scoped) key."""

    __tablename__ = "stored_collections"

    key = Column(String, primary_key=True, doc="Storage key, e.g. 'tasks_v1__<user_id>'")
    payload = Column(Text, nullable=False, default="[]", doc="JSON list of records")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        doc="When the slot was last written"
    )

    def __repr__(self):
        return f"<StoredCollection(key={self.key}, bytes={len(self.payload or '')})>"


def build_engine(url: str):
    """Create an engine for the given URL.

    In-memory SQLite URLs share a single connection so every session sees
    the same database.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool, echo=False)
    return create_engine(url, connect_args=connect_args, echo=False)


def create_session_factory(bind):
    """Create tables on the engine and return a session factory bound to it."""
    Base.metadata.create_all(bind=bind)
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


# Database Engine Setup
engine = build_engine(settings.DATABASE_URL)

# Session Factory (creates all tables)
SessionLocal = create_session_factory(engine)
