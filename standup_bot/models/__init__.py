"""Database models."""

from standup_bot.models.database import (
    Base,
    SessionLocal,
    create_db_engine,
    engine,
    init_db,
    make_session_factory,
    session_scope,
    utcnow,
)
from standup_bot.models.workspace import Workspace
from standup_bot.models.member import Member
from standup_bot.models.standup import Standup, Entry
from standup_bot.models.lock import JobLock

__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "init_db",
    "make_session_factory",
    "session_scope",
    "utcnow",
    "Workspace",
    "Member",
    "Standup",
    "Entry",
    "JobLock",
]
