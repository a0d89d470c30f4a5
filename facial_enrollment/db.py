# facial_enrollment/db.py
from __future__ import annotations

from urllib.parse import urlsplit

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from .config import settings
from .logging_utils import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.database_url


def safe_url(url: str) -> str:
    """Database URL with the password masked, for logs."""
    parts = urlsplit(url)
    if not parts.hostname:
        return f"{parts.scheme}://{parts.path}"
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.scheme}://{parts.username}:***@{parts.hostname}{port}{parts.path}"


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory SQLite: every session must share the single connection.
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    # For Postgres we don't pass SQLite-only args like check_same_thread.
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
    }


logger.info("Using database %s", safe_url(DATABASE_URL))

engine = create_engine(DATABASE_URL, future=True, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

class Base(DeclarativeBase):
    pass

def init_db():
    # Create tables if they don't exist (dev only; use Alembic in prod)
    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
