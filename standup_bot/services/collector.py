"""Starting stand-ups, prompting members, and recording their answers."""

import logging
from typing import Optional, Tuple

from standup_bot.slack.blocks import collection_modal, collection_prompt_blocks
from standup_bot.slack.gateway import SlackGateway
from standup_bot.store import MemberStore, StandupStore, WorkspaceConfig
from standup_bot.timing import today_in

logger = logging.getLogger(__name__)

PROMPT_TEXT = "It's time for your daily stand-up! Please click the button below to submit."
SUBMITTED_TEXT = "✅ Thank you! Your stand-up has been submitted successfully."
SKIPPED_TEXT = "✅ You've skipped today's stand-up. No worries! See you next time."


class Collector:
    """Fans out collection prompts and records what comes back."""

    def __init__(self, gateway: SlackGateway, standups: StandupStore, members: MemberStore):
        self.gateway = gateway
        self.standups = standups
        self.members = members

    def start(self, workspace: WorkspaceConfig) -> str:
        """Get or create today's stand-up (workspace-local date). Committed before any prompt goes out."""
        standup_id, _ = self.open(workspace)
        return standup_id

    def open(self, workspace: WorkspaceConfig) -> Tuple[str, bool]:
        """Like ``start``, also reporting whether today's stand-up was created by this call."""
        local_date = today_in(workspace.timezone)
        return self.standups.open_for_date(workspace.id, workspace.default_channel_id, local_date)

    def dispatch(self, workspace_id: str, standup_id: str, trigger_id: Optional[str] = None,
                 user_id: Optional[str] = None) -> int:
        """Prompt every opted-in member, or just ``user_id``.

        With a ``trigger_id`` for that specific user the collection modal opens
        directly; everyone else gets a DM with Submit/Skip buttons. A failure
        for one recipient is logged and the rest still get prompted. Returns
        the number of prompts delivered.
        """
        recipients = [user_id] if user_id else self.members.opted_in_users(workspace_id)
        logger.info("Starting collection for %s: %d recipient(s)", standup_id, len(recipients))

        delivered = 0
        for recipient in recipients:
            try:
                if trigger_id and recipient == user_id:
                    self.gateway.open_modal(trigger_id, collection_modal(standup_id))
                else:
                    dm_channel = self.gateway.open_dm(recipient)
                    self.gateway.post_message(dm_channel, collection_prompt_blocks(standup_id), PROMPT_TEXT)
                delivered += 1
                logger.debug("Collection request sent to %s for %s", recipient, standup_id)
            except Exception:
                logger.exception("Failed to send collection request to %s for %s", recipient, standup_id)

        return delivered

    def submit(self, standup_id: str, user_id: str, yesterday: str, today: str,
               blockers: Optional[str] = None) -> None:
        """Record (or overwrite) the user's entry and confirm by DM."""
        self.standups.record_entry(standup_id, user_id, yesterday, today, blockers)
        self._notify(user_id, SUBMITTED_TEXT)

    def skip(self, standup_id: str, user_id: str) -> None:
        """Acknowledge a skip. Nothing is stored; the user shows up as missed."""
        self._notify(user_id, SKIPPED_TEXT)
        logger.info("User %s skipped stand-up %s", user_id, standup_id)

    def _notify(self, user_id: str, text: str) -> None:
        try:
            self.gateway.post_text(user_id, text)
        except Exception:
            logger.exception("Failed to send confirmation to %s", user_id)
