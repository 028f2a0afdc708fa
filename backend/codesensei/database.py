"""Database connection and session management."""
from collections.abc import Generator
from pathlib import Path

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from codesensei.config import Settings

Base = declarative_base()


def _engine_options(database_url: str, timeout_seconds: float) -> dict:
    """Bound how long a request may wait on the store before giving up."""
    if database_url.startswith("sqlite"):
        # SQLite requires check_same_thread=False for FastAPI; timeout is the busy-lock wait
        return {"connect_args": {"check_same_thread": False, "timeout": timeout_seconds}}
    return {"pool_timeout": timeout_seconds, "pool_pre_ping": True}


def _ensure_sqlite_directory(database_url: str) -> None:
    database_path = make_url(database_url).database
    if database_path and database_path != ":memory:":
        Path(database_path).parent.mkdir(parents=True, exist_ok=True)


def create_db_engine(settings: Settings) -> Engine:
    """Build the engine for ``settings.database_url``."""
    if settings.database_url.startswith("sqlite"):
        _ensure_sqlite_directory(settings.database_url)
    return create_engine(
        settings.database_url,
        echo=settings.debug,
        **_engine_options(settings.database_url, settings.db_timeout_seconds),
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency that provides a database session from the app's engine."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
