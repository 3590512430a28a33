import pytest
from sqlalchemy import func, select

from standup_bot.cache import CacheRegistry
from standup_bot.errors import InvalidCronError, InvalidTimezoneError
from standup_bot.models import Entry, Standup, Workspace
from standup_bot.store import MemberStore, StandupStore, WorkspaceStore


@pytest.fixture
def caches():
    return CacheRegistry()


@pytest.fixture
def workspaces(session_factory, caches):
    return WorkspaceStore(session_factory, caches)


@pytest.fixture
def members(session_factory, caches):
    return MemberStore(session_factory, caches)


@pytest.fixture
def standups(session_factory):
    return StandupStore(session_factory)


@pytest.fixture
def ws(workspaces):
    return workspaces.upsert("T1", "C1", "UTC", "30 9 * * *", True)


def count(session_factory, model):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestWorkspaceStore:
    def test_upsert_creates_then_updates(self, workspaces, session_factory):
        first = workspaces.upsert("T1", "C1", "UTC", "30 9 * * *", True)
        second = workspaces.upsert("T1", "C2", "Asia/Kolkata", "0 10 * * *", False)

        assert first.id == second.id
        assert second.default_channel_id == "C2"
        assert second.timezone == "Asia/Kolkata"
        assert second.cron == "0 10 * * *"
        assert second.summary_enabled is False
        assert count(session_factory, Workspace) == 1

    def test_invalid_cron_is_rejected_before_writing(self, workspaces, session_factory):
        with pytest.raises(InvalidCronError):
            workspaces.upsert("T1", "C1", "UTC", "whenever", True)
        assert count(session_factory, Workspace) == 0

    def test_invalid_timezone_is_rejected_before_writing(self, workspaces, session_factory):
        with pytest.raises(InvalidTimezoneError):
            workspaces.upsert("T1", "C1", "Atlantis/Capital", "30 9 * * *", True)
        assert count(session_factory, Workspace) == 0

    def test_get_by_team_is_refreshed_after_upsert(self, workspaces):
        workspaces.upsert("T1", "C1", "UTC", "30 9 * * *", True)
        assert workspaces.get_by_team("T1").default_channel_id == "C1"

        workspaces.upsert("T1", "C9", "UTC", "30 9 * * *", True)
        assert workspaces.get_by_team("T1").default_channel_id == "C9"

    def test_get_by_team_unknown(self, workspaces):
        assert workspaces.get_by_team("nope") is None

    def test_get_and_list(self, workspaces, ws):
        workspaces.upsert("T2", "C2", "UTC", "0 8 * * *", False)
        assert workspaces.get(ws.id) == ws
        assert workspaces.get("missing") is None
        assert [w.team_id for w in workspaces.list_all()] == ["T1", "T2"]


class TestMemberStore:
    def test_opt_in_and_out(self, members, ws):
        members.set_opt_in(ws.id, "U1", True)
        assert members.is_opted_in(ws.id, "U1")

        members.set_opt_in(ws.id, "U1", False)
        assert not members.is_opted_in(ws.id, "U1")

    def test_unknown_member_is_not_opted_in(self, members, ws):
        assert not members.is_opted_in(ws.id, "U404")

    def test_opted_in_users_keeps_join_order(self, members, ws):
        for user_id in ("U3", "U1", "U2"):
            members.set_opt_in(ws.id, user_id, True)
        members.set_opt_in(ws.id, "U1", False)

        assert members.opted_in_users(ws.id) == ["U3", "U2"]

    def test_ensure_members_only_creates_new(self, members, ws):
        members.set_opt_in(ws.id, "U1", False)

        assert members.ensure_members(ws.id, ["U1", "U2", "U2", "U3"]) == 2
        assert members.ensure_members(ws.id, ["U2"]) == 0
        assert members.ensure_members(ws.id, []) == 0
        assert members.opted_in_users(ws.id) == ["U2", "U3"]


class TestStandupStore:
    def test_get_or_create_is_idempotent(self, standups, ws, session_factory):
        first = standups.get_or_create(ws.id, "C1", "2024-03-04")
        second = standups.get_or_create(ws.id, "C1", "2024-03-04")

        assert first == second
        assert count(session_factory, Standup) == 1

    def test_open_for_date_reports_creation(self, standups, ws):
        standup_id, created = standups.open_for_date(ws.id, "C1", "2024-03-04")
        assert created
        assert standups.open_for_date(ws.id, "C1", "2024-03-04") == (standup_id, False)

    def test_different_dates_get_different_standups(self, standups, ws):
        assert standups.get_or_create(ws.id, "C1", "2024-03-04") != standups.get_or_create(ws.id, "C1", "2024-03-05")

    def test_new_standup_is_open(self, standups, ws):
        standup = standups.get_standup(standups.get_or_create(ws.id, "C1", "2024-03-04"))
        assert standup.date == "2024-03-04"
        assert standup.channel_id == "C1"
        assert not standup.is_compiled
        assert standup.message_ts is None

    def test_record_entry_overwrites(self, standups, ws, session_factory):
        standup_id = standups.get_or_create(ws.id, "C1", "2024-03-04")

        standups.record_entry(standup_id, "U1", "a", "b", "c")
        standups.record_entry(standup_id, "U1", "x", "y", None)

        entries = standups.list_entries(standup_id)
        assert count(session_factory, Entry) == 1
        assert (entries[0].yesterday, entries[0].today, entries[0].blockers) == ("x", "y", None)
        assert entries[0].updated_at >= entries[0].submitted_at

    def test_blank_blockers_are_stored_as_none(self, standups, ws):
        standup_id = standups.get_or_create(ws.id, "C1", "2024-03-04")
        standups.record_entry(standup_id, "U1", "a", "b", "   ")
        assert standups.list_entries(standup_id)[0].blockers is None

    def test_entries_listed_in_submission_order(self, standups, ws):
        standup_id = standups.get_or_create(ws.id, "C1", "2024-03-04")
        for user_id in ("U2", "U1", "U3"):
            standups.record_entry(standup_id, user_id, "y", "t")
        standups.record_entry(standup_id, "U2", "edited", "t")

        assert [e.user_id for e in standups.list_entries(standup_id)] == ["U2", "U1", "U3"]

    def test_mark_compiled_only_once(self, standups, ws):
        standup_id = standups.get_or_create(ws.id, "C1", "2024-03-04")

        assert standups.mark_compiled(standup_id, "111.1") == "111.1"
        assert standups.mark_compiled(standup_id, "222.2") == "111.1"

        standup = standups.get_standup(standup_id)
        assert standup.is_compiled
        assert standup.message_ts == "111.1"

    def test_find_uncompiled_latest(self, standups, ws):
        older = standups.get_or_create(ws.id, "C1", "2024-03-04")
        newer = standups.get_or_create(ws.id, "C1", "2024-03-05")
        assert standups.find_uncompiled_latest(ws.id) == newer

        standups.mark_compiled(newer, "1.1")
        assert standups.find_uncompiled_latest(ws.id) == older

        standups.mark_compiled(older, "2.2")
        assert standups.find_uncompiled_latest(ws.id) is None

    def test_find_by_date(self, standups, ws):
        standup_id = standups.get_or_create(ws.id, "C1", "2024-03-04")
        assert standups.find_by_date(ws.id, "2024-03-04").id == standup_id
        assert standups.find_by_date(ws.id, "2024-03-05") is None
