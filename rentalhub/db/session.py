"""SQLAlchemy engine, session factory and shared column helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import create_engine, or_
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.config import settings

IS_SQLITE = settings.DB_URL.startswith("sqlite")

# For SQLite, ``check_same_thread=False`` lets FastAPI's threadpool share the
# connection. PostgreSQL gets a health-checked pool instead.
CONNECT_ARGS = {"check_same_thread": False} if IS_SQLITE else {}
ENGINE_OPTIONS = {} if IS_SQLITE else {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}

engine = create_engine(settings.DB_URL, connect_args=CONNECT_ARGS, **ENGINE_OPTIONS)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
# Parent class for every model in rentalhub/models.
Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """``%term%`` for ILIKE with the wildcards in ``term`` escaped."""
    escaped = term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_filter(term: str, *columns):
    """Case-insensitive substring match of ``term`` on any of ``columns``."""
    pattern = contains_pattern(term)
    return or_(*(column.ilike(pattern, escape=LIKE_ESCAPE) for column in columns))


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
