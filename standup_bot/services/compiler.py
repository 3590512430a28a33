"""Compiling stand-ups into a posted digest and an optional threaded summary."""

import logging
from typing import Dict, List, Optional, Sequence

from standup_bot.errors import (
    NoEntriesError,
    StandupNotCompiledError,
    StandupNotFoundError,
    SummaryUnavailableError,
    WorkspaceNotFoundError,
)
from standup_bot.services.summarizer import Summarizer, SummaryInput
from standup_bot.slack.blocks import DigestEntry, digest_blocks, summary_blocks
from standup_bot.slack.gateway import SlackGateway
from standup_bot.store import EntryRecord, MemberStore, StandupStore, WorkspaceStore

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"


def missed_members(opted_in: Sequence[str], entries: Sequence[EntryRecord]) -> List[str]:
    """Opted-in users with no entry, in opted-in order."""
    submitted = {entry.user_id for entry in entries}
    return [user_id for user_id in opted_in if user_id not in submitted]


class Compiler:
    """Turns a stand-up's entries into a digest, at most once per stand-up."""

    def __init__(self, gateway: SlackGateway, standups: StandupStore, members: MemberStore,
                 workspaces: WorkspaceStore, summarizer: Optional[Summarizer] = None):
        self.gateway = gateway
        self.standups = standups
        self.members = members
        self.workspaces = workspaces
        self.summarizer = summarizer

    def compile(self, standup_id: str) -> Optional[str]:
        """Post the digest and mark the stand-up compiled. Returns the digest message ts.

        An already-compiled stand-up returns its existing reference without
        posting again.
        """
        standup = self.standups.get_standup(standup_id)
        if standup is None:
            raise StandupNotFoundError(f"Stand-up {standup_id} not found")
        if standup.is_compiled:
            logger.info("Stand-up %s already compiled", standup_id)
            return standup.message_ts

        workspace = self.workspaces.get(standup.workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(f"Workspace {standup.workspace_id} not found")

        entries = self.standups.list_entries(standup_id)
        missed = missed_members(self.members.opted_in_users(standup.workspace_id), entries)

        names: Dict[str, str] = {}
        digest_entries = [
            DigestEntry(
                user_id=e.user_id,
                display_name=self._display_name(e.user_id, names),
                yesterday=e.yesterday,
                today=e.today,
                blockers=e.blockers,
            )
            for e in entries
        ]
        missed_names = [self._display_name(user_id, names) for user_id in missed]

        blocks = digest_blocks(standup.date, workspace.timezone, digest_entries, missed)
        text = f"Stand-up for {standup.date}: {len(digest_entries)} update(s)"
        if missed_names:
            text += f", missed: {', '.join(missed_names)}"
        posted_ts = self.gateway.post_message(standup.channel_id, blocks, text)

        self._report_late_entries(standup_id, entries)
        message_ts = self.standups.mark_compiled(standup_id, posted_ts)
        if message_ts != posted_ts:
            # Another instance compiled first and owns the thread
            logger.warning("Stand-up %s was compiled elsewhere as %s; digest %s is a duplicate",
                           standup_id, message_ts, posted_ts)
            return message_ts
        logger.info("Stand-up %s compiled: %d entries, %d missed, posted as %s",
                    standup_id, len(entries), len(missed), message_ts)

        if self.summarizer and workspace.summary_enabled and digest_entries:
            try:
                self._post_summary(standup.channel_id, message_ts, digest_entries)
            except Exception:
                logger.exception("Failed to generate summary for stand-up %s", standup_id)

        return message_ts

    def regenerate_summary(self, workspace_id: str, date: str) -> None:
        """Re-run only the summary for a compiled stand-up, as a new reply in its thread."""
        if self.summarizer is None:
            raise SummaryUnavailableError("No summarizer is configured")

        standup = self.standups.find_by_date(workspace_id, date)
        if standup is None or not standup.is_compiled or not standup.message_ts:
            raise StandupNotCompiledError(f"No compiled stand-up for {workspace_id} on {date}")

        entries = self.standups.list_entries(standup.id)
        if not entries:
            raise NoEntriesError(f"Stand-up {standup.id} has no entries")

        names: Dict[str, str] = {}
        digest_entries = [
            DigestEntry(e.user_id, self._display_name(e.user_id, names), e.yesterday, e.today, e.blockers)
            for e in entries
        ]
        self._post_summary(standup.channel_id, standup.message_ts, digest_entries)

    def _post_summary(self, channel_id: str, thread_ts: str, entries: List[DigestEntry]) -> None:
        logger.info("Generating summary for %s/%s", channel_id, thread_ts)
        summary = self.summarizer.generate_summary([
            SummaryInput(
                display_name=e.display_name,
                prev_text=e.yesterday,
                curr_text=e.today,
                blockers_text=e.blockers,
            )
            for e in entries
        ])
        blocks = summary_blocks(summary.highlights, summary.blockers, summary.action_items)
        self.gateway.post_thread_reply(channel_id, thread_ts, blocks, "AI Summary")
        logger.info("Summary posted to %s/%s", channel_id, thread_ts)

    def _display_name(self, user_id: str, names: Dict[str, str]) -> str:
        if user_id not in names:
            try:
                names[user_id] = self.gateway.display_name(user_id)
            except Exception:
                logger.exception("Failed to get user info for %s", user_id)
                names[user_id] = UNKNOWN_NAME
        return names[user_id]

    def _report_late_entries(self, standup_id: str, read: Sequence[EntryRecord]) -> None:
        # Entries that land between reading and marking compiled are not in the digest
        seen = {e.user_id for e in read}
        late = [e.user_id for e in self.standups.list_entries(standup_id) if e.user_id not in seen]
        if late:
            logger.warning("Stand-up %s received entries after the digest was built: %s",
                           standup_id, ", ".join(late))
