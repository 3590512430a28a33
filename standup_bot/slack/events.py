"""Slack event handlers."""

import logging

from slack_bolt import App

from standup_bot.services import Services
from standup_bot.slack.blocks import HELP_TEXT

logger = logging.getLogger(__name__)


def register(app: App, services: Services) -> None:
    @app.event("app_mention")
    def handle_app_mention(event: dict):
        """Reply in thread with the command list."""
        try:
            services.gateway.post_thread_reply(
                event["channel"],
                event["ts"],
                blocks=[{"type": "section", "text": {"type": "mrkdwn", "text": f"👋 Hi! I'm the Stand-up Bot.\n\n{HELP_TEXT}"}}],
                text="👋 Hi! I'm the Stand-up Bot. Mention me anytime for help.",
            )
        except Exception:
            logger.exception("Failed to handle app mention in %s", event.get("channel"))

    @app.event("message")
    def handle_message(event: dict):
        """DMs with the bot need no handling; acknowledge so Bolt stays quiet."""
