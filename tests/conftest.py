"""Shared fixtures: a throwaway SQLite database, a fake Slack client and fake clocks."""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from slack_sdk.errors import SlackApiError
from slack_sdk.web import SlackResponse

from standup_bot.config import Settings
from standup_bot.models import create_db_engine, init_db, make_session_factory
from standup_bot.services import build_services
from standup_bot.services.summarizer import Summarizer, SummaryResult
from standup_bot.slack.gateway import SlackGateway


def slack_error(error: str, status_code: int = 200, method: str = "chat.postMessage") -> SlackApiError:
    """A SlackApiError shaped like the ones slack_sdk raises."""
    response = SlackResponse(
        client=None,
        http_verb="POST",
        api_url=f"https://slack.com/api/{method}",
        req_args={},
        data={"ok": False, "error": error},
        headers={},
        status_code=status_code,
    )
    return SlackApiError(f"The request to the Slack API failed. (error: {error})", response)


class FakeSlackClient:
    """Stands in for slack_sdk.WebClient, recording every call."""

    def __init__(self, names: Optional[Dict[str, str]] = None):
        self.names = names or {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, object] = {}
        self.members: List[dict] = []
        self._ts = 0

    def fail(self, method: str, error: Exception, times: Optional[int] = None, when=None):
        """Make ``method`` raise ``error``, optionally only ``times`` times or when ``when(kwargs)`` is true."""
        self.failures[method] = {"error": error, "times": times, "when": when}

    def _record(self, method: str, **kwargs):
        self.calls.append((method, kwargs))
        failure = self.failures.get(method)
        if failure and (failure["when"] is None or failure["when"](kwargs)):
            if failure["times"] is None or failure["times"] > 0:
                if failure["times"] is not None:
                    failure["times"] -= 1
                raise failure["error"]

    def calls_to(self, method: str) -> List[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def chat_postMessage(self, **kwargs):
        self._record("chat_postMessage", **kwargs)
        self._ts += 1
        return {"ok": True, "channel": kwargs["channel"], "ts": f"1700000000.{self._ts:06d}"}

    def conversations_open(self, users):
        self._record("conversations_open", users=users)
        return {"ok": True, "channel": {"id": f"D-{users}"}}

    def views_open(self, trigger_id, view):
        self._record("views_open", trigger_id=trigger_id, view=view)
        return {"ok": True, "view": {"id": "V1"}}

    def users_info(self, user):
        self._record("users_info", user=user)
        return {"ok": True, "user": {"id": user, "name": user.lower(), "real_name": self.names.get(user, "")}}

    def conversations_info(self, channel):
        self._record("conversations_info", channel=channel)
        return {"ok": True, "channel": {"id": channel, "name": "standup"}}

    def users_list(self, limit=1000, cursor=None):
        self._record("users_list", limit=limit, cursor=cursor)
        page = 0 if not cursor else int(cursor)
        pages = self.members or [[]]
        next_cursor = str(page + 1) if page + 1 < len(pages) else ""
        return {"ok": True, "members": pages[page], "response_metadata": {"next_cursor": next_cursor}}


class FakeSummarizer(Summarizer):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    def generate_summary(self, entries):
        self.calls.append(list(entries))
        if self.error:
            raise self.error
        return SummaryResult(
            highlights="- shipped the thing",
            blockers="- waiting on review",
            action_items="- review the PR",
        )


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 3, 4, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Sleeper:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'standup.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def slack_client() -> FakeSlackClient:
    return FakeSlackClient(names={"UA": "Ada Lovelace", "UB": "Brian Kernighan", "UC": "Claude Shannon"})


@pytest.fixture
def sleeper() -> Sleeper:
    return Sleeper()


@pytest.fixture
def gateway(slack_client, sleeper) -> SlackGateway:
    return SlackGateway(slack_client, max_attempts=3, base_delay=1.0, sleep=sleeper)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        slack_bot_token="xoxb-test",
        slack_app_token="xapp-test",
        slack_signing_secret="secret",
        anthropic_api_key="",
        google_cloud_project="",
        database_url="sqlite://",
        default_tz="UTC",
        summary_enabled=True,
        collection_window_minutes=45,
        lock_lease_seconds=60,
    )


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def services(test_settings, slack_client, session_factory, summarizer, gateway):
    built = build_services(
        test_settings,
        slack_client,
        session_factory,
        summarizer=summarizer,
        gateway=gateway,
        scheduler_backend=BackgroundScheduler(timezone="UTC"),
    )
    yield built
    built.scheduler.shutdown()


@pytest.fixture
def workspace(services):
    """A configured workspace with UA, UB and UC opted in."""
    config = services.workspaces.upsert(
        team_id="T1",
        channel_id="C-standup",
        timezone="UTC",
        cron="30 9 * * *",
        summary_enabled=True,
    )
    for user_id in ("UA", "UB", "UC"):
        services.members.set_opt_in(config.id, user_id, True)
    return config
