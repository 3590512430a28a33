"""Block Kit payloads for digests, prompts and modals."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

CONFIG_MODAL_ID = "standup_config_modal"
COLLECTION_MODAL_ID = "standup_collection_modal"
OPEN_STANDUP_ACTION = "open_standup_modal"
SKIP_STANDUP_ACTION = "skip_standup"

HELP_TEXT = (
    "📋 *Stand-up Bot Commands*\n\n"
    "• `/standup init` - Set up stand-ups for your workspace\n"
    "• `/standup today` - Run a stand-up now\n"
    "• `/standup summary` - Regenerate the AI summary of today's stand-up\n"
    "• `/standup config` - Update configuration\n"
    "• `/standup optin` - Opt in to daily stand-ups\n"
    "• `/standup optout` - Opt out of daily stand-ups\n"
    "• `/standup status` - View current configuration"
)


@dataclass(frozen=True)
class DigestEntry:
    """An entry ready for rendering, with the submitter's resolved name."""
    user_id: str
    display_name: str
    yesterday: str
    today: str
    blockers: Optional[str] = None


def _mrkdwn(text: str) -> dict:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _plain(text: str) -> dict:
    return {"type": "plain_text", "text": text}


def digest_header_blocks(date: str, tz: str, now: Optional[datetime] = None) -> List[dict]:
    now = now or datetime.now(timezone.utc)
    epoch = int(now.timestamp())
    return [
        {"type": "header", "text": {"type": "plain_text", "text": f"📋 Stand-up – {date}", "emoji": True}},
        {
            "type": "context",
            "elements": [{
                "type": "mrkdwn",
                "text": f"*Timezone:* {tz} | *Generated:* <!date^{epoch}^{{date_pretty}} at {{time}}|{now.isoformat()}>",
            }],
        },
        {"type": "divider"},
    ]


def entry_blocks(entry: DigestEntry) -> List[dict]:
    blocks = [
        _mrkdwn(f"*<@{entry.user_id}>*"),
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Yesterday:*\n{entry.yesterday}"},
                {"type": "mrkdwn", "text": f"*Today:*\n{entry.today}"},
            ],
        },
    ]
    if entry.blockers and entry.blockers.strip():
        blocks.append(_mrkdwn(f"*Blockers:* 🚧\n{entry.blockers}"))
    blocks.append({"type": "divider"})
    return blocks


def missed_blocks(missed_user_ids: List[str]) -> List[dict]:
    if not missed_user_ids:
        return []
    mentions = ", ".join(f"<@{user_id}>" for user_id in missed_user_ids)
    return [_mrkdwn(f"*Missed:* {mentions}")]


def digest_blocks(date: str, tz: str, entries: List[DigestEntry], missed_user_ids: List[str],
                  now: Optional[datetime] = None) -> List[dict]:
    """The full digest: header, one block group per entry, then who missed it."""
    blocks = digest_header_blocks(date, tz, now)
    for entry in entries:
        blocks.extend(entry_blocks(entry))
    if not entries:
        blocks.append(_mrkdwn("_No updates were submitted._"))
    blocks.extend(missed_blocks(missed_user_ids))
    return blocks


def summary_blocks(highlights: str, blockers: str, action_items: str) -> List[dict]:
    return [
        {"type": "header", "text": {"type": "plain_text", "text": "✨ AI Summary", "emoji": True}},
        _mrkdwn(f"*📌 Highlights*\n{highlights}"),
        _mrkdwn(f"*🚧 Blockers & Risks*\n{blockers}"),
        _mrkdwn(f"*✅ Action Items*\n{action_items}"),
    ]


def collection_prompt_blocks(standup_id: str) -> List[dict]:
    """DM asking a member to submit or skip."""
    return [
        _mrkdwn("👋 It's time for your daily stand-up!"),
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": _plain("Submit Stand-up"),
                    "action_id": OPEN_STANDUP_ACTION,
                    "value": standup_id,
                    "style": "primary",
                },
                {
                    "type": "button",
                    "text": _plain("Skip Today"),
                    "action_id": SKIP_STANDUP_ACTION,
                    "value": standup_id,
                },
            ],
        },
    ]


def _text_input(block_id: str, action_id: str, label: str, placeholder: str, optional: bool = False) -> dict:
    return {
        "type": "input",
        "block_id": block_id,
        "optional": optional,
        "element": {
            "type": "plain_text_input",
            "action_id": action_id,
            "multiline": True,
            "placeholder": _plain(placeholder),
        },
        "label": _plain(label),
    }


def collection_modal(standup_id: str) -> dict:
    return {
        "type": "modal",
        "callback_id": COLLECTION_MODAL_ID,
        "private_metadata": json.dumps({"standup_id": standup_id}),
        "title": _plain("Daily Stand-up"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "blocks": [
            _mrkdwn("Share your daily update:"),
            _text_input("yesterday_block", "yesterday_input", "Yesterday", "What did you work on yesterday?"),
            _text_input("today_block", "today_input", "Today", "What are you working on today?"),
            _text_input("blockers_block", "blockers_input", "Blockers (optional)", "Any blockers or issues?",
                        optional=True),
        ],
    }


def config_modal(channel_id: Optional[str] = None, tz: Optional[str] = None, hour: Optional[int] = None,
                 minute: Optional[int] = None, summary_enabled: bool = False,
                 default_tz: str = "Asia/Kolkata") -> dict:
    channel_element = {
        "type": "channels_select",
        "action_id": "channel_select",
        "placeholder": _plain("Select a channel"),
    }
    if channel_id:
        channel_element["initial_channel"] = channel_id

    initial_time = f"{hour:02d}:{minute:02d}" if hour is not None and minute is not None else "09:30"

    summary_option = {"text": _plain("Enable AI summary"), "value": "enabled"}
    summary_element = {"type": "checkboxes", "action_id": "summary_checkbox", "options": [summary_option]}
    if summary_enabled:
        summary_element["initial_options"] = [summary_option]

    return {
        "type": "modal",
        "callback_id": CONFIG_MODAL_ID,
        "title": _plain("Configure Stand-up"),
        "submit": _plain("Save"),
        "close": _plain("Cancel"),
        "blocks": [
            {"type": "input", "block_id": "channel_block", "element": channel_element,
             "label": _plain("Target Channel")},
            {
                "type": "input",
                "block_id": "time_block",
                "element": {
                    "type": "plain_text_input",
                    "action_id": "time_input",
                    "placeholder": _plain("e.g., 09:30"),
                    "initial_value": initial_time,
                },
                "label": _plain("Stand-up Time (HH:MM)"),
            },
            {
                "type": "input",
                "block_id": "timezone_block",
                "element": {
                    "type": "plain_text_input",
                    "action_id": "timezone_input",
                    "placeholder": _plain("e.g., Asia/Kolkata"),
                    "initial_value": tz or default_tz,
                },
                "label": _plain("Timezone"),
            },
            {"type": "input", "block_id": "summary_block", "optional": True, "element": summary_element,
             "label": _plain("Summary Settings")},
        ],
    }
