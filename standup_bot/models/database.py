"""Database engine, sessions, and table creation."""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from standup_bot.config import settings

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across worker threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 15}
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def make_session_factory(bind: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = create_db_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


@contextmanager
def session_scope(factory: Callable[[], Session] = SessionLocal) -> Generator[Session, None, None]:
    """Transactional scope: commit on success, roll back on error."""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine = engine) -> None:
    """Create all tables. Importing the models registers them on Base."""
    from standup_bot.models import workspace, member, standup, lock  # noqa: F401

    Base.metadata.create_all(bind=bind)
