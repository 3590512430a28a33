"""Per-workspace collection and compile timers.

Each workspace gets two daily cron triggers in its own timezone: one that
starts collection and one that compiles ``collection_window_minutes`` later.
Every fire is arbitrated through a store-backed lease so only one running
instance does the work.
"""

import logging
import os
import socket
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from standup_bot.errors import WorkspaceNotFoundError
from standup_bot.locks import LockManager
from standup_bot.services.collector import Collector
from standup_bot.services.compiler import Compiler
from standup_bot.store import StandupStore, WorkspaceStore
from standup_bot.timing import compile_time, parse_cron

logger = logging.getLogger(__name__)


def make_instance_id() -> str:
    return f"scheduler-{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


def collection_lock_key(workspace_id: str) -> str:
    return f"standup-job-{workspace_id}"


def compile_lock_key(workspace_id: str) -> str:
    return f"standup-job-{workspace_id}-compile"


@dataclass
class ScheduledPair:
    collect_job: Job
    compile_job: Job
    collect_cron: str
    compile_cron: str
    timezone: str


class StandupScheduler:
    """Owns the timer registry for every workspace served by this instance."""

    def __init__(
        self,
        workspaces: WorkspaceStore,
        standups: StandupStore,
        collector: Collector,
        compiler: Compiler,
        locks: LockManager,
        collection_window_minutes: int = 45,
        scheduler: Optional[BackgroundScheduler] = None,
        instance_id: Optional[str] = None,
    ):
        self.workspaces = workspaces
        self.standups = standups
        self.collector = collector
        self.compiler = compiler
        self.locks = locks
        self.collection_window_minutes = collection_window_minutes
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.instance_id = instance_id or make_instance_id()
        self._jobs: Dict[str, ScheduledPair] = {}
        self._lock = threading.RLock()

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        """Cancel every timer and stop the scheduler. In-flight jobs finish."""
        self.cancel_all()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    # -- registry ----------------------------------------------------------

    def schedule_all(self) -> int:
        """Install timers for every workspace. Returns how many were scheduled."""
        workspaces = self.workspaces.list_all()
        scheduled = sum(1 for workspace in workspaces if self.schedule_one(workspace.id))
        logger.info("Scheduled jobs for %d of %d workspaces", scheduled, len(workspaces))
        return scheduled

    def schedule_one(self, workspace_id: str) -> bool:
        """Replace a workspace's timers with ones built from its current config."""
        with self._lock:
            self.cancel_one(workspace_id)

            workspace = self.workspaces.get(workspace_id)
            if workspace is None:
                logger.error("Workspace %s not found, nothing scheduled", workspace_id)
                return False

            trigger = parse_cron(workspace.cron)
            if trigger is None:
                logger.error("Workspace %s has an invalid trigger %r, nothing scheduled",
                             workspace_id, workspace.cron)
                return False

            compile_at = compile_time(trigger, self.collection_window_minutes)

            collect_job = self.scheduler.add_job(
                self._guarded(self.run_collection, "collection"),
                CronTrigger(hour=trigger.hour, minute=trigger.minute, timezone=workspace.timezone),
                args=[workspace_id],
                id=f"collect-{workspace_id}",
                name=f"collect {workspace.team_id}",
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=300,
            )
            compile_job = self.scheduler.add_job(
                self._guarded(self.run_compile, "compilation"),
                CronTrigger(hour=compile_at.hour, minute=compile_at.minute, timezone=workspace.timezone),
                args=[workspace_id],
                id=f"compile-{workspace_id}",
                name=f"compile {workspace.team_id}",
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=300,
            )

            self._jobs[workspace_id] = ScheduledPair(
                collect_job=collect_job,
                compile_job=compile_job,
                collect_cron=workspace.cron,
                compile_cron=f"{compile_at.minute} {compile_at.hour} * * *",
                timezone=workspace.timezone,
            )

        logger.info("Workspace %s scheduled: collect %s, compile %s (%s)",
                    workspace_id, trigger, compile_at, workspace.timezone)
        return True

    def cancel_one(self, workspace_id: str) -> None:
        """Stop both timers for a workspace. No-op if none are installed."""
        with self._lock:
            pair = self._jobs.pop(workspace_id, None)
            if pair is None:
                return
            for job in (pair.collect_job, pair.compile_job):
                try:
                    job.remove()
                except JobLookupError:
                    pass
        logger.info("Workspace %s jobs cancelled", workspace_id)

    def cancel_all(self) -> None:
        with self._lock:
            for workspace_id in list(self._jobs):
                self.cancel_one(workspace_id)
        logger.info("All jobs stopped")

    def scheduled_count(self) -> int:
        with self._lock:
            return len(self._jobs)

    def get_pair(self, workspace_id: str) -> Optional[ScheduledPair]:
        with self._lock:
            return self._jobs.get(workspace_id)

    def run_later(self, func: Callable, delay_seconds: float, *args, name: str = "one-shot task") -> Job:
        """Run ``func(*args)`` once after ``delay_seconds`` on the scheduler's workers."""
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        return self.scheduler.add_job(
            self._guarded(func, name),
            DateTrigger(run_date=run_date),
            args=list(args),
            name=name,
            misfire_grace_time=None,
        )

    # -- job bodies --------------------------------------------------------

    def run_collection(self, workspace_id: str, reprompt: bool = False) -> Optional[str]:
        """Scheduled collection. Returns the stand-up id, or None if another instance has it.

        Prompts only go out when this call opened today's stand-up, so a
        second instance firing after the lease was released sends nothing.
        ``reprompt`` prompts again for an existing stand-up.
        """
        with self.locks.lease_for(collection_lock_key(workspace_id), self.instance_id) as acquired:
            if not acquired:
                logger.debug("Another instance is handling collection for %s", workspace_id)
                return None

            workspace = self.workspaces.get(workspace_id)
            if workspace is None:
                raise WorkspaceNotFoundError(f"Workspace {workspace_id} not found")

            logger.info("Starting scheduled stand-up for %s", workspace_id)
            standup_id, created = self.collector.open(workspace)
            if not created and not reprompt:
                logger.info("Stand-up %s was already opened for %s, not prompting again", standup_id, workspace_id)
                return standup_id
            self.collector.dispatch(workspace_id, standup_id)
            logger.info("Collection started for %s: %s", workspace_id, standup_id)
            return standup_id

    def run_compile(self, workspace_id: str, standup_id: Optional[str] = None) -> Optional[str]:
        """Scheduled compilation of ``standup_id``, or the latest open stand-up."""
        with self.locks.lease_for(compile_lock_key(workspace_id), self.instance_id) as acquired:
            if not acquired:
                logger.debug("Another instance is handling compilation for %s", workspace_id)
                return None

            standup_id = standup_id or self.standups.find_uncompiled_latest(workspace_id)
            if standup_id is None:
                logger.warning("No open stand-up to compile for %s", workspace_id)
                return None

            logger.info("Starting compilation of %s for %s", standup_id, workspace_id)
            message_ts = self.compiler.compile(standup_id)
            logger.info("Compilation completed for %s: %s", standup_id, message_ts)
            return message_ts

    def start_now(self, workspace_id: str) -> Optional[str]:
        """Run collection immediately and compile once the collection window has passed.

        Returns the stand-up id, or None when another instance is already
        collecting for this workspace.
        """
        standup_id = self.run_collection(workspace_id, reprompt=True)
        if standup_id is None:
            return None

        self.run_later(
            self.run_compile,
            self.collection_window_minutes * 60,
            workspace_id,
            standup_id,
            name=f"ad-hoc compile {standup_id}",
        )
        logger.info("Ad-hoc stand-up %s started; compiling in %d minutes",
                    standup_id, self.collection_window_minutes)
        return standup_id

    def _guarded(self, func: Callable, label: str) -> Callable:
        """Wrap a job so failures are logged instead of reaching the scheduler."""
        def job(*args):
            try:
                return func(*args)
            except Exception:
                logger.exception("Scheduled %s failed (args=%s)", label, args)
                return None

        job.__name__ = f"{label}_job"
        return job
