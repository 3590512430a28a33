"""Stand-up summaries using Claude (Anthropic API or Vertex AI)."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

import anthropic

from standup_bot.config import Settings
from standup_bot.errors import SummarizerError

logger = logging.getLogger(__name__)

NO_HIGHLIGHTS = "No highlights available."
NO_BLOCKERS = "No blockers reported."
NO_ACTION_ITEMS = "No action items identified."

SYSTEM_PROMPT = "You are a helpful assistant that summarizes team stand-ups concisely."

_HIGHLIGHTS = re.compile(r"HIGHLIGHTS:(.*?)(?=BLOCKERS:|$)", re.S)
_BLOCKERS = re.compile(r"BLOCKERS:(.*?)(?=ACTION_ITEMS:|$)", re.S)
_ACTION_ITEMS = re.compile(r"ACTION_ITEMS:(.*)$", re.S)


@dataclass(frozen=True)
class SummaryInput:
    display_name: str
    prev_text: str
    curr_text: str
    blockers_text: Optional[str] = None


@dataclass(frozen=True)
class SummaryResult:
    highlights: str
    blockers: str
    action_items: str


class Summarizer:
    """Turns stand-up entries into highlights, blockers and action items."""

    def generate_summary(self, entries: Sequence[SummaryInput]) -> SummaryResult:
        raise NotImplementedError


def build_prompt(entries: Sequence[SummaryInput]) -> str:
    standup_text = "\n\n".join(
        f"{e.display_name}:\n"
        f"Yesterday: {e.prev_text}\n"
        f"Today: {e.curr_text}\n"
        f"Blockers: {e.blockers_text or 'None'}"
        for e in entries
    )
    return f"""You are analyzing a team stand-up. Please provide:
1. Highlights (key accomplishments and progress)
2. Blockers & Risks (issues that need attention)
3. Action Items (next steps and dependencies)

Stand-up data:
{standup_text}

Format your response as:
HIGHLIGHTS:
[bullet points]

BLOCKERS:
[bullet points]

ACTION_ITEMS:
[bullet points]

Keep it concise and under 2000 characters total."""


def parse_summary(content: str) -> SummaryResult:
    """Split the model's reply into its three sections, with fallbacks for any that are missing."""
    def section(pattern: re.Pattern, fallback: str) -> str:
        match = pattern.search(content or "")
        text = match.group(1).strip() if match else ""
        return text or fallback

    return SummaryResult(
        highlights=section(_HIGHLIGHTS, NO_HIGHLIGHTS),
        blockers=section(_BLOCKERS, NO_BLOCKERS),
        action_items=section(_ACTION_ITEMS, NO_ACTION_ITEMS),
    )


class ClaudeSummarizer(Summarizer):
    """Summarizer backed by a Claude messages client."""

    def __init__(self, client, model: str, max_tokens: int = 800):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def generate_summary(self, entries: Sequence[SummaryInput]) -> SummaryResult:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(entries)}],
            )
        except anthropic.APIError as e:
            logger.error("Claude API error while summarizing: %s", e)
            raise SummarizerError(f"Summary generation failed: {e}") from e

        content = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        return parse_summary(content)


def create_summarizer(config: Settings) -> Optional[Summarizer]:
    """Build the configured summarizer, or None when summaries are off or unconfigured."""
    if not config.summary_enabled:
        logger.info("Summaries disabled by configuration")
        return None

    if config.anthropic_api_key:
        client = anthropic.Anthropic(api_key=config.anthropic_api_key, max_retries=config.summary_max_retries)
    elif config.google_cloud_project:
        client = anthropic.AnthropicVertex(
            project_id=config.google_cloud_project,
            region=config.google_cloud_region,
            max_retries=config.summary_max_retries,
        )
    else:
        logger.warning("No Anthropic credentials configured, summaries will be disabled")
        return None

    return ClaudeSummarizer(client, model=config.claude_model)

