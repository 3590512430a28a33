"""Stand-up lifecycle services and their wiring."""

from dataclasses import dataclass
from typing import Callable, Optional

from slack_sdk import WebClient
from sqlalchemy.orm import Session

from standup_bot.cache import CacheRegistry
from standup_bot.config import Settings
from standup_bot.locks import LockManager
from standup_bot.services.collector import Collector
from standup_bot.services.compiler import Compiler
from standup_bot.services.scheduler import StandupScheduler
from standup_bot.services.summarizer import Summarizer, create_summarizer
from standup_bot.slack.gateway import SlackGateway
from standup_bot.store import MemberStore, StandupStore, WorkspaceStore


@dataclass
class Services:
    settings: Settings
    gateway: SlackGateway
    workspaces: WorkspaceStore
    members: MemberStore
    standups: StandupStore
    locks: LockManager
    collector: Collector
    compiler: Compiler
    scheduler: StandupScheduler
    summarizer: Optional[Summarizer]


def build_services(
    config: Settings,
    client: WebClient,
    session_factory: Callable[[], Session],
    summarizer: Optional[Summarizer] = None,
    gateway: Optional[SlackGateway] = None,
    scheduler_backend=None,
) -> Services:
    """Wire one bot instance's services around a Slack client and a session factory."""
    caches = CacheRegistry(config.workspace_cache_ttl, config.member_cache_ttl)
    gateway = gateway or SlackGateway(
        client,
        max_attempts=config.slack_retry_attempts,
        base_delay=config.slack_retry_base_delay,
    )
    if summarizer is None:
        summarizer = create_summarizer(config)

    workspaces = WorkspaceStore(session_factory, caches)
    members = MemberStore(session_factory, caches)
    standups = StandupStore(session_factory)
    locks = LockManager(session_factory, lease_seconds=config.lock_lease_seconds)
    collector = Collector(gateway, standups, members)
    compiler = Compiler(gateway, standups, members, workspaces, summarizer)
    scheduler = StandupScheduler(
        workspaces,
        standups,
        collector,
        compiler,
        locks,
        collection_window_minutes=config.collection_window_minutes,
        scheduler=scheduler_backend,
    )
    return Services(
        settings=config,
        gateway=gateway,
        workspaces=workspaces,
        members=members,
        standups=standups,
        locks=locks,
        collector=collector,
        compiler=compiler,
        scheduler=scheduler,
        summarizer=summarizer,
    )


__all__ = ["Services", "build_services"]
