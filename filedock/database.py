"""
Database setup: declarative base, common mixins and session factory.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Session.info key under which the configuration cipher is attached
CIPHER_INFO_KEY = "config_cipher"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class SoftDeleteMixin:
    """
    Mixin that adds soft delete capability via deleted_at timestamp.

    Query Patterns:
        # Active records only (default)
        stmt = Model.active_query()

        # Include deleted records (admin/audit)
        stmt = select(Model)
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    @property
    def is_deleted(self) -> bool:
        """Check if record is soft-deleted."""
        return self.deleted_at is not None

    def soft_delete(self, db: Session) -> None:
        """Soft delete this record by setting deleted_at to current time."""
        self.deleted_at = utcnow()
        db.add(self)
        db.flush()

    def restore(self, db: Session) -> None:
        """Restore a soft-deleted record by clearing deleted_at."""
        self.deleted_at = None
        db.add(self)
        db.flush()

    @classmethod
    def active_query(cls):
        """Return a select statement that excludes soft-deleted records."""
        return select(cls).where(cls.deleted_at.is_(None))


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    In-memory SQLite databases share one connection so that every session
    sees the same schema.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)

    logger.info(f"Database engine created for dialect: {engine.dialect.name}")
    return engine


def create_session_factory(engine: Engine, cipher=None) -> sessionmaker:
    """
    Create a session factory bound to engine.

    Args:
        engine: SQLAlchemy engine
        cipher: ConfigCipher attached to every session for the pre-save guard
    """
    info = {CIPHER_INFO_KEY: cipher} if cipher is not None else {}
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, info=info)


def init_db(engine: Engine) -> None:
    """Create all tables."""
    # Import models so their tables are registered on Base.metadata
    from .models import provider  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
