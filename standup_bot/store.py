"""Persistent state for workspaces, members, stand-ups and entries.

Every operation runs in its own short-lived session and returns frozen
snapshots, so results can be cached and shared between worker threads.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from standup_bot.cache import CacheRegistry, member_key
from standup_bot.errors import InvalidCronError, InvalidTimezoneError
from standup_bot.models import Entry, Member, SessionLocal, Standup, Workspace, session_scope, utcnow
from standup_bot.timing import parse_cron, validate_timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceConfig:
    id: str
    team_id: str
    default_channel_id: str
    timezone: str
    cron: str
    summary_enabled: bool

    @classmethod
    def from_model(cls, workspace: Workspace) -> "WorkspaceConfig":
        return cls(
            id=workspace.id,
            team_id=workspace.team_id,
            default_channel_id=workspace.default_channel_id,
            timezone=workspace.timezone,
            cron=workspace.cron,
            summary_enabled=bool(workspace.summary_enabled),
        )


@dataclass(frozen=True)
class StandupRecord:
    id: str
    workspace_id: str
    channel_id: str
    date: str
    started_at: datetime
    compiled_at: Optional[datetime]
    message_ts: Optional[str]

    @property
    def is_compiled(self) -> bool:
        return self.compiled_at is not None

    @classmethod
    def from_model(cls, standup: Standup) -> "StandupRecord":
        return cls(
            id=standup.id,
            workspace_id=standup.workspace_id,
            channel_id=standup.channel_id,
            date=standup.date,
            started_at=standup.started_at,
            compiled_at=standup.compiled_at,
            message_ts=standup.message_ts,
        )


@dataclass(frozen=True)
class EntryRecord:
    user_id: str
    yesterday: str
    today: str
    blockers: Optional[str]
    submitted_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, entry: Entry) -> "EntryRecord":
        return cls(
            user_id=entry.user_id,
            yesterday=entry.yesterday,
            today=entry.today,
            blockers=entry.blockers,
            submitted_at=entry.submitted_at,
            updated_at=entry.updated_at,
        )


class WorkspaceStore:
    """Workspace configuration, read through the workspace cache."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 caches: Optional[CacheRegistry] = None):
        self.session_factory = session_factory
        self.caches = caches or CacheRegistry()

    def upsert(self, team_id: str, channel_id: str, timezone: str, cron: str,
               summary_enabled: bool) -> WorkspaceConfig:
        """Create or update the workspace keyed by ``team_id``."""
        if parse_cron(cron) is None:
            raise InvalidCronError(f"Invalid trigger expression: {cron!r}")
        if not validate_timezone(timezone):
            raise InvalidTimezoneError(f"Unknown timezone: {timezone!r}")

        try:
            config = self._write(team_id, channel_id, timezone, cron, summary_enabled)
        except IntegrityError:
            # Another instance created it first; apply our values on top
            config = self._write(team_id, channel_id, timezone, cron, summary_enabled)

        self.caches.invalidate_workspace(team_id)
        logger.info("Workspace %s configured: %s %s", team_id, cron, timezone)
        return config

    def _write(self, team_id, channel_id, timezone, cron, summary_enabled) -> WorkspaceConfig:
        with session_scope(self.session_factory) as db:
            workspace = db.execute(
                select(Workspace).where(Workspace.team_id == team_id)
            ).scalar_one_or_none()
            if workspace is None:
                workspace = Workspace(team_id=team_id)
                db.add(workspace)
            workspace.default_channel_id = channel_id
            workspace.timezone = timezone
            workspace.cron = cron
            workspace.summary_enabled = summary_enabled
            db.flush()
            return WorkspaceConfig.from_model(workspace)

    def get(self, workspace_id: str) -> Optional[WorkspaceConfig]:
        with session_scope(self.session_factory) as db:
            workspace = db.get(Workspace, workspace_id)
            return WorkspaceConfig.from_model(workspace) if workspace else None

    def get_by_team(self, team_id: str) -> Optional[WorkspaceConfig]:
        return self.caches.workspaces.get_or_load(team_id, lambda: self._load_by_team(team_id))

    def _load_by_team(self, team_id: str) -> Optional[WorkspaceConfig]:
        with session_scope(self.session_factory) as db:
            workspace = db.execute(
                select(Workspace).where(Workspace.team_id == team_id)
            ).scalar_one_or_none()
            return WorkspaceConfig.from_model(workspace) if workspace else None

    def list_all(self) -> List[WorkspaceConfig]:
        with session_scope(self.session_factory) as db:
            workspaces = db.execute(select(Workspace).order_by(Workspace.created_at)).scalars()
            return [WorkspaceConfig.from_model(w) for w in workspaces]


class MemberStore:
    """Opt-in membership per (workspace, user)."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 caches: Optional[CacheRegistry] = None):
        self.session_factory = session_factory
        self.caches = caches or CacheRegistry()

    def set_opt_in(self, workspace_id: str, user_id: str, opted_in: bool) -> None:
        try:
            self._write_opt_in(workspace_id, user_id, opted_in)
        except IntegrityError:
            self._write_opt_in(workspace_id, user_id, opted_in)

        self.caches.invalidate_member(workspace_id, user_id)
        logger.info("User %s opted %s in workspace %s", user_id, "in" if opted_in else "out", workspace_id)

    def _write_opt_in(self, workspace_id: str, user_id: str, opted_in: bool) -> None:
        with session_scope(self.session_factory) as db:
            member = db.execute(
                select(Member).where(Member.workspace_id == workspace_id, Member.user_id == user_id)
            ).scalar_one_or_none()
            if member is None:
                db.add(Member(workspace_id=workspace_id, user_id=user_id, opted_in=opted_in))
            else:
                member.opted_in = opted_in

    def is_opted_in(self, workspace_id: str, user_id: str) -> bool:
        key = member_key(workspace_id, user_id)
        return bool(self.caches.opt_in.get_or_load(key, lambda: self._load_opt_in(workspace_id, user_id)))

    def _load_opt_in(self, workspace_id: str, user_id: str) -> bool:
        with session_scope(self.session_factory) as db:
            opted_in = db.execute(
                select(Member.opted_in).where(Member.workspace_id == workspace_id, Member.user_id == user_id)
            ).scalar_one_or_none()
            return bool(opted_in)

    def opted_in_users(self, workspace_id: str) -> List[str]:
        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(Member.user_id)
                .where(Member.workspace_id == workspace_id, Member.opted_in.is_(True))
                .order_by(Member.created_at, Member.user_id)
            ).scalars()
            return list(rows)

    def ensure_members(self, workspace_id: str, user_ids: Iterable[str]) -> int:
        """Create opted-in members for any of ``user_ids`` not yet known. Returns the count created."""
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return 0

        with session_scope(self.session_factory) as db:
            existing = set(db.execute(
                select(Member.user_id).where(Member.workspace_id == workspace_id, Member.user_id.in_(user_ids))
            ).scalars())
            new_ids = [uid for uid in user_ids if uid not in existing]
            db.add_all(Member(workspace_id=workspace_id, user_id=uid, opted_in=True) for uid in new_ids)

        if new_ids:
            logger.info("Created %d new members in workspace %s", len(new_ids), workspace_id)
        return len(new_ids)


class StandupStore:
    """Stand-up lifecycle: open on creation, compiled exactly once."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get_or_create(self, workspace_id: str, channel_id: str, local_date: str) -> str:
        """Return the stand-up for (workspace, date), creating it if needed."""
        standup_id, _ = self.open_for_date(workspace_id, channel_id, local_date)
        return standup_id

    def open_for_date(self, workspace_id: str, channel_id: str, local_date: str) -> Tuple[str, bool]:
        """Like ``get_or_create``, but also report whether this call created the row."""
        existing = self.find_by_date(workspace_id, local_date)
        if existing:
            logger.info("Stand-up already exists for %s on %s", workspace_id, local_date)
            return existing.id, False

        try:
            with session_scope(self.session_factory) as db:
                standup = Standup(
                    workspace_id=workspace_id,
                    channel_id=channel_id,
                    date=local_date,
                    started_at=utcnow(),
                )
                db.add(standup)
                db.flush()
                standup_id = standup.id
        except IntegrityError:
            # Lost a race with another instance; theirs is the stand-up
            existing = self.find_by_date(workspace_id, local_date)
            if existing is None:
                raise
            return existing.id, False

        logger.info("Stand-up %s created for %s on %s", standup_id, workspace_id, local_date)
        return standup_id, True

    def get_standup(self, standup_id: str) -> Optional[StandupRecord]:
        with session_scope(self.session_factory) as db:
            standup = db.get(Standup, standup_id)
            return StandupRecord.from_model(standup) if standup else None

    def find_by_date(self, workspace_id: str, local_date: str) -> Optional[StandupRecord]:
        with session_scope(self.session_factory) as db:
            standup = db.execute(
                select(Standup).where(Standup.workspace_id == workspace_id, Standup.date == local_date)
            ).scalar_one_or_none()
            return StandupRecord.from_model(standup) if standup else None

    def find_uncompiled_latest(self, workspace_id: str) -> Optional[str]:
        with session_scope(self.session_factory) as db:
            return db.execute(
                select(Standup.id)
                .where(Standup.workspace_id == workspace_id, Standup.compiled_at.is_(None))
                .order_by(Standup.started_at.desc())
                .limit(1)
            ).scalar_one_or_none()

    def record_entry(self, standup_id: str, user_id: str, prev: str, curr: str,
                     blockers: Optional[str] = None) -> None:
        """Insert the user's entry, or overwrite it if they already submitted."""
        blockers = blockers if blockers and blockers.strip() else None
        try:
            self._write_entry(standup_id, user_id, prev, curr, blockers)
        except IntegrityError:
            # Concurrent double submit; the row exists now, so this becomes an update
            self._write_entry(standup_id, user_id, prev, curr, blockers)
        logger.info("Entry saved for %s in %s", user_id, standup_id)

    def _write_entry(self, standup_id, user_id, prev, curr, blockers) -> None:
        with session_scope(self.session_factory) as db:
            entry = db.execute(
                select(Entry).where(Entry.standup_id == standup_id, Entry.user_id == user_id)
            ).scalar_one_or_none()
            now = utcnow()
            if entry is None:
                db.add(Entry(
                    standup_id=standup_id,
                    user_id=user_id,
                    yesterday=prev,
                    today=curr,
                    blockers=blockers,
                    submitted_at=now,
                    updated_at=now,
                ))
            else:
                entry.yesterday = prev
                entry.today = curr
                entry.blockers = blockers
                entry.updated_at = now

    def list_entries(self, standup_id: str) -> List[EntryRecord]:
        with session_scope(self.session_factory) as db:
            entries = db.execute(
                select(Entry).where(Entry.standup_id == standup_id).order_by(Entry.submitted_at, Entry.id)
            ).scalars()
            return [EntryRecord.from_model(e) for e in entries]

    def mark_compiled(self, standup_id: str, message_ref: str) -> Optional[str]:
        """Record the digest reference. Already-compiled stand-ups keep their original one."""
        with session_scope(self.session_factory) as db:
            result = db.execute(
                update(Standup)
                .where(Standup.id == standup_id, Standup.compiled_at.is_(None))
                .values(compiled_at=utcnow(), message_ts=message_ref)
            )
            if result.rowcount:
                return message_ref
            prior = db.execute(select(Standup.message_ts).where(Standup.id == standup_id)).scalar_one_or_none()

        logger.info("Stand-up %s was already compiled; keeping %s", standup_id, prior)
        return prior
