"""Engine, session factory and request-scoped sessions for the ledger database."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from webchat_guard.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the ledger, organization and audit tables."""


# Model modules register their tables on Base.metadata at import.
import webchat_guard.models  # noqa: E402,F401


def engine_options(url: str) -> dict[str, Any]:
    """Return `create_engine` keyword arguments suited to the database URL.

    SQLite connections are shared with FastAPI's threadpool, so the same-thread
    check is disabled there; server databases get connection liveness checks.
    """
    options: dict[str, Any] = {"echo": settings.sql_debug}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(
    settings.effective_database_url,
    **engine_options(settings.effective_database_url),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request, rolling back uncommitted work on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
