import pytest

from standup_bot.slack.blocks import CONFIG_MODAL_ID, HELP_TEXT
from standup_bot.slack.commands import FAILURE_TEXT, NOT_CONFIGURED, dispatch

from conftest import slack_error


class Responder:
    def __init__(self):
        self.texts = []

    def __call__(self, text, response_type=None):
        assert response_type == "ephemeral"
        self.texts.append(text)


@pytest.fixture
def respond():
    return Responder()


def command(text, user_id="UA", team_id="T1"):
    return {"text": text, "user_id": user_id, "team_id": team_id, "trigger_id": "trig-1"}


def test_empty_command_shows_help(services, respond):
    dispatch(services, command(""), respond)
    assert respond.texts == [HELP_TEXT]


def test_unknown_subcommand(services, respond):
    dispatch(services, command("dance"), respond)
    assert respond.texts == ["❌ Unknown command: `dance`. Use `/standup help` to see available commands."]


def test_subcommand_is_case_insensitive(services, respond):
    dispatch(services, command("HELP me"), respond)
    assert respond.texts == [HELP_TEXT]


def test_init_opens_setup_modal(services, slack_client, respond):
    dispatch(services, command("init"), respond)

    opened = slack_client.calls_to("views_open")
    assert opened[0]["view"]["callback_id"] == CONFIG_MODAL_ID
    assert respond.texts == []


def test_failed_modal_gets_short_reply(services, slack_client, respond):
    slack_client.fail("views_open", slack_error("expired_trigger_id"))

    dispatch(services, command("init"), respond)

    assert respond.texts == [FAILURE_TEXT["init"]]


def test_config_requires_workspace(services, respond):
    dispatch(services, command("config"), respond)
    assert respond.texts == [NOT_CONFIGURED]


def test_optin_before_setup(services, respond):
    dispatch(services, command("optin"), respond)
    assert "ask an admin" in respond.texts[0]


def test_optout_then_status(services, workspace, respond):
    dispatch(services, command("optout"), respond)
    dispatch(services, command("status"), respond)

    assert not services.members.is_opted_in(workspace.id, "UA")
    status = respond.texts[-1]
    assert "*Channel:* <#C-standup>" in status
    assert "*Timezone:* UTC" in status
    assert "❌ Opted Out" in status


def test_optin_new_member(services, workspace, respond):
    dispatch(services, command("optin", user_id="UNEW"), respond)

    assert services.members.is_opted_in(workspace.id, "UNEW")
    assert respond.texts[0].startswith("✅ You have opted in")


def test_today_starts_collection(services, workspace, slack_client, respond):
    dispatch(services, command("today"), respond)

    assert respond.texts[0] == "⏳ Starting stand-up collection now..."
    assert "Compilation scheduled in 45 minutes" in respond.texts[1]
    assert len(slack_client.calls_to("conversations_open")) == 3
    assert len(services.scheduler.scheduler.get_jobs()) == 1


def test_today_while_collection_running(services, workspace, respond):
    services.locks.acquire(f"standup-job-{workspace.id}", "other-instance")

    dispatch(services, command("today"), respond)

    assert respond.texts[-1] == "⏳ A stand-up collection is already running for this workspace."


def test_summary_before_compilation(services, workspace, respond):
    dispatch(services, command("summary"), respond)
    assert respond.texts[-1].startswith("❌ No compiled stand-up for today yet")


def test_summary_without_summarizer(services, workspace, respond):
    services.summarizer = None
    dispatch(services, command("summary"), respond)
    assert respond.texts == ["❌ Summary feature is not enabled. Set ANTHROPIC_API_KEY and SUMMARY_ENABLED=true."]
