"""The /standup slash command and its subcommands."""

import logging
from typing import Callable, Dict

from slack_bolt import App

from standup_bot.errors import NoEntriesError, StandupNotCompiledError, SummaryUnavailableError
from standup_bot.services import Services
from standup_bot.slack.blocks import HELP_TEXT, config_modal
from standup_bot.timing import format_local, next_run, parse_cron, today_in

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "❌ Workspace not configured. Please run `/standup init` first."


def _reply(respond, text: str):
    respond(text=text, response_type="ephemeral")


def handle_help(services: Services, command: dict, respond) -> None:
    _reply(respond, HELP_TEXT)


def handle_init(services: Services, command: dict, respond) -> None:
    services.gateway.open_modal(command["trigger_id"], config_modal(default_tz=services.settings.default_tz))
    logger.info("Init modal opened by %s in %s", command["user_id"], command["team_id"])


def handle_config(services: Services, command: dict, respond) -> None:
    workspace = services.workspaces.get_by_team(command["team_id"])
    if workspace is None:
        _reply(respond, NOT_CONFIGURED)
        return

    trigger = parse_cron(workspace.cron)
    view = config_modal(
        channel_id=workspace.default_channel_id,
        tz=workspace.timezone,
        hour=trigger.hour if trigger else None,
        minute=trigger.minute if trigger else None,
        summary_enabled=workspace.summary_enabled,
        default_tz=services.settings.default_tz,
    )
    services.gateway.open_modal(command["trigger_id"], view)
    logger.info("Config modal opened by %s for %s", command["user_id"], workspace.id)


def handle_today(services: Services, command: dict, respond) -> None:
    workspace = services.workspaces.get_by_team(command["team_id"])
    if workspace is None:
        _reply(respond, NOT_CONFIGURED)
        return

    _reply(respond, "⏳ Starting stand-up collection now...")
    standup_id = services.scheduler.start_now(workspace.id)
    if standup_id is None:
        _reply(respond, "⏳ A stand-up collection is already running for this workspace.")
        return

    window = services.settings.collection_window_minutes
    _reply(
        respond,
        f"✅ Stand-up collection started! Messages sent to opted-in members. "
        f"Compilation scheduled in {window} minutes.",
    )
    logger.info("Ad-hoc stand-up %s started by %s", standup_id, command["user_id"])


def handle_summary(services: Services, command: dict, respond) -> None:
    if services.summarizer is None:
        _reply(respond, "❌ Summary feature is not enabled. Set ANTHROPIC_API_KEY and SUMMARY_ENABLED=true.")
        return

    workspace = services.workspaces.get_by_team(command["team_id"])
    if workspace is None:
        _reply(respond, NOT_CONFIGURED)
        return

    _reply(respond, "⏳ Regenerating summary...")
    try:
        services.compiler.regenerate_summary(workspace.id, today_in(workspace.timezone))
    except StandupNotCompiledError:
        _reply(respond, "❌ No compiled stand-up for today yet. Run `/standup today` first.")
        return
    except NoEntriesError:
        _reply(respond, "❌ Today's stand-up has no entries to summarize.")
        return
    except SummaryUnavailableError:
        _reply(respond, "❌ Summary feature is not enabled.")
        return

    _reply(respond, "✅ Summary regenerated and posted to the stand-up thread!")
    logger.info("Summary regenerated by %s for %s", command["user_id"], workspace.id)


def _set_opt_in(opted_in: bool) -> Callable:
    def handler(services: Services, command: dict, respond) -> None:
        workspace = services.workspaces.get_by_team(command["team_id"])
        if workspace is None:
            _reply(respond, "❌ Workspace not configured. Please ask an admin to run `/standup init` first.")
            return

        services.members.set_opt_in(workspace.id, command["user_id"], opted_in)
        if opted_in:
            _reply(respond, "✅ You have opted in to daily stand-ups! You will receive DMs when stand-ups are scheduled.")
        else:
            _reply(respond, "👋 You have opted out of daily stand-ups. Use `/standup optin` to rejoin anytime.")

    return handler


handle_optin = _set_opt_in(True)
handle_optout = _set_opt_in(False)


def handle_status(services: Services, command: dict, respond) -> None:
    workspace = services.workspaces.get_by_team(command["team_id"])
    if workspace is None:
        _reply(respond, NOT_CONFIGURED)
        return

    opted_in = services.members.is_opted_in(workspace.id, command["user_id"])
    upcoming = next_run(workspace.cron, workspace.timezone)
    next_text = format_local(upcoming, workspace.timezone) if upcoming else "Not scheduled"

    _reply(
        respond,
        "📊 *Stand-up Status*\n\n"
        f"*Channel:* <#{workspace.default_channel_id}>\n"
        f"*Timezone:* {workspace.timezone}\n"
        f"*Next Run:* {next_text}\n"
        f"*Summary Enabled:* {'Yes' if workspace.summary_enabled else 'No'}\n"
        f"*Your Status:* {'✅ Opted In' if opted_in else '❌ Opted Out'}",
    )


SUBCOMMANDS: Dict[str, Callable] = {
    "help": handle_help,
    "init": handle_init,
    "config": handle_config,
    "today": handle_today,
    "summary": handle_summary,
    "optin": handle_optin,
    "optout": handle_optout,
    "status": handle_status,
}

FAILURE_TEXT = {
    "init": "❌ Failed to open the setup dialog. Please try again.",
    "config": "❌ Failed to open configuration. Please try again.",
    "today": "❌ Failed to start stand-up. Please try again.",
    "summary": "❌ Failed to regenerate summary. Make sure a stand-up was compiled today.",
    "optin": "❌ Failed to opt in. Please try again.",
    "optout": "❌ Failed to opt out. Please try again.",
    "status": "❌ Failed to fetch status. Please try again.",
}


def dispatch(services: Services, command: dict, respond) -> None:
    """Route ``/standup <subcommand>`` and turn failures into a short reply."""
    subcommand = (command.get("text") or "").strip().split(" ")[0].lower() or "help"
    handler = SUBCOMMANDS.get(subcommand)
    if handler is None:
        _reply(respond, f"❌ Unknown command: `{subcommand}`. Use `/standup help` to see available commands.")
        return

    try:
        handler(services, command, respond)
    except Exception:
        logger.exception("Failed to handle /standup %s for %s", subcommand, command.get("user_id"))
        try:
            _reply(respond, FAILURE_TEXT.get(subcommand, "❌ Something went wrong. Please try again."))
        except Exception:
            logger.exception("Failed to send error response")


def register(app: App, services: Services) -> None:
    @app.command("/standup")
    def handle_standup(ack, command, respond):
        """Acknowledge fast, then do the work."""
        ack()
        dispatch(services, command, respond)
