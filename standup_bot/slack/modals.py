"""Modal and button handlers: workspace setup and stand-up collection."""

import json
import logging

from slack_bolt import App
from slack_sdk.errors import SlackApiError

from standup_bot.errors import ValidationError
from standup_bot.services import Services
from standup_bot.slack.blocks import (
    COLLECTION_MODAL_ID,
    CONFIG_MODAL_ID,
    OPEN_STANDUP_ACTION,
    SKIP_STANDUP_ACTION,
    collection_modal,
)
from standup_bot.timing import build_cron, parse_time_of_day, validate_timezone

logger = logging.getLogger(__name__)


def _value(values: dict, block_id: str, action_id: str) -> dict:
    return values.get(block_id, {}).get(action_id, {}) or {}


def read_config_submission(view: dict) -> dict:
    """Extract and validate the setup modal.

    Returns ``{"errors": {...}}`` for invalid input, otherwise the parsed
    channel, hour, minute, timezone and summary flag.
    """
    values = view["state"]["values"]
    channel_id = _value(values, "channel_block", "channel_select").get("selected_channel")
    time_text = _value(values, "time_block", "time_input").get("value") or ""
    tz = (_value(values, "timezone_block", "timezone_input").get("value") or "").strip()
    summary_enabled = bool(_value(values, "summary_block", "summary_checkbox").get("selected_options"))

    errors = {}
    if not channel_id:
        errors["channel_block"] = "Please select a channel."
    try:
        trigger = parse_time_of_day(time_text)
    except ValidationError as e:
        errors["time_block"] = str(e)
        trigger = None
    if not validate_timezone(tz):
        errors["timezone_block"] = "Invalid timezone. Use IANA timezone format (e.g., Asia/Kolkata)"

    if errors:
        return {"errors": errors}
    return {
        "channel_id": channel_id,
        "hour": trigger.hour,
        "minute": trigger.minute,
        "timezone": tz,
        "summary_enabled": summary_enabled,
    }


def seed_members(services: Services, workspace_id: str) -> int:
    """Create opted-in members for workspace users not seen before. Existing choices are kept."""
    try:
        created = services.members.ensure_members(workspace_id, services.gateway.list_members())
    except Exception:
        logger.exception("Failed to seed members for %s", workspace_id)
        return 0
    return created


def apply_config(services: Services, team_id: str, user_id: str, parsed: dict) -> str:
    """Save the configuration, reschedule the workspace and announce it. Returns the workspace id."""
    cron = build_cron(parsed["hour"], parsed["minute"])
    workspace = services.workspaces.upsert(
        team_id=team_id,
        channel_id=parsed["channel_id"],
        timezone=parsed["timezone"],
        cron=cron,
        summary_enabled=parsed["summary_enabled"],
    )
    services.scheduler.schedule_one(workspace.id)
    seed_members(services, workspace.id)

    time_text = f"{parsed['hour']:02d}:{parsed['minute']:02d}"
    details = (
        f"Stand-ups will be collected at *{time_text}* ({parsed['timezone']})"
        f" and posted in <#{parsed['channel_id']}>.\n"
        f"AI Summary: {'Enabled' if parsed['summary_enabled'] else 'Disabled'}\n\n"
        "Use `/standup optin` to participate and `/standup status` to view details."
    )
    try:
        services.gateway.post_text(parsed["channel_id"], f"✅ Stand-up bot configured successfully!\n\n{details}")
    except SlackApiError as e:
        if e.response.get("error") != "not_in_channel":
            raise
        logger.warning("Bot not in %s; configuration saved, notifying %s by DM", parsed["channel_id"], user_id)
        services.gateway.post_text(
            user_id,
            "✅ Stand-up bot configured successfully!\n\n"
            f"⚠️ *Important:* Please invite me to <#{parsed['channel_id']}> by typing `/invite @Stand-up Bot`\n\n"
            f"{details}",
        )

    logger.info("Workspace %s configured by %s: %s %s", workspace.id, user_id, cron, parsed["timezone"])
    return workspace.id


def read_collection_submission(view: dict) -> dict:
    values = view["state"]["values"]
    metadata = json.loads(view.get("private_metadata") or "{}")
    return {
        "standup_id": metadata.get("standup_id"),
        "yesterday": _value(values, "yesterday_block", "yesterday_input").get("value") or "",
        "today": _value(values, "today_block", "today_input").get("value") or "",
        "blockers": _value(values, "blockers_block", "blockers_input").get("value"),
    }


def register(app: App, services: Services) -> None:
    @app.action(OPEN_STANDUP_ACTION)
    def handle_open_standup(ack, body, action):
        """Open the collection modal for the stand-up on the button."""
        ack()
        standup_id = action.get("value", "")
        try:
            services.gateway.open_modal(body["trigger_id"], collection_modal(standup_id))
            logger.info("Collection modal opened for %s (%s)", body["user"]["id"], standup_id)
        except Exception:
            logger.exception("Failed to open stand-up modal for %s", body["user"]["id"])

    @app.action(SKIP_STANDUP_ACTION)
    def handle_skip(ack, body, action):
        ack()
        services.collector.skip(action.get("value", ""), body["user"]["id"])

    @app.view(COLLECTION_MODAL_ID)
    def handle_collection_submit(ack, body, view):
        """Record a stand-up entry from the collection modal."""
        ack()
        submission = read_collection_submission(view)
        user_id = body["user"]["id"]
        if not submission["standup_id"]:
            logger.error("Collection modal from %s had no stand-up id", user_id)
            return
        try:
            services.collector.submit(
                submission["standup_id"],
                user_id,
                submission["yesterday"],
                submission["today"],
                submission["blockers"],
            )
        except Exception:
            logger.exception("Failed to save stand-up entry for %s", user_id)
            try:
                services.gateway.post_text(user_id, "❌ Sorry, your stand-up could not be saved. Please try again.")
            except Exception:
                logger.exception("Failed to tell %s their entry was not saved", user_id)

    @app.view(CONFIG_MODAL_ID)
    def handle_config_submit(ack, body, view):
        """Validate before saving anything; invalid fields are reported inline."""
        parsed = read_config_submission(view)
        if "errors" in parsed:
            ack(response_action="errors", errors=parsed["errors"])
            return
        ack()

        team_id = (body.get("team") or {}).get("id") or body["user"].get("team_id")
        user_id = body["user"]["id"]
        if not team_id:
            logger.error("Unable to determine team for config submission from %s", user_id)
            return
        try:
            apply_config(services, team_id, user_id, parsed)
        except Exception:
            logger.exception("Failed to save configuration for %s", team_id)
            try:
                services.gateway.post_text(user_id, "❌ Failed to save configuration. Please try again.")
            except Exception:
                logger.exception("Failed to tell %s the configuration was not saved", user_id)
