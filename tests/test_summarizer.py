from types import SimpleNamespace

import anthropic
import pytest

from standup_bot.errors import SummarizerError
from standup_bot.services.summarizer import (
    NO_ACTION_ITEMS,
    NO_BLOCKERS,
    NO_HIGHLIGHTS,
    ClaudeSummarizer,
    SummaryInput,
    build_prompt,
    create_summarizer,
    parse_summary,
)

ENTRIES = [
    SummaryInput("Ada Lovelace", "fixed the build", "write docs"),
    SummaryInput("Claude Shannon", "reviews", "release", "waiting on QA"),
]


class FakeMessages:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.reply)])


def fake_client(**kwargs):
    return SimpleNamespace(messages=FakeMessages(**kwargs))


def test_parse_summary_sections():
    result = parse_summary(
        "HIGHLIGHTS:\n- build fixed\n\nBLOCKERS:\n- QA sign-off\n\nACTION_ITEMS:\n- chase QA\n"
    )
    assert result.highlights == "- build fixed"
    assert result.blockers == "- QA sign-off"
    assert result.action_items == "- chase QA"


def test_parse_summary_fallbacks():
    result = parse_summary("The model ignored the format.")
    assert (result.highlights, result.blockers, result.action_items) == (NO_HIGHLIGHTS, NO_BLOCKERS, NO_ACTION_ITEMS)


def test_parse_summary_empty_section_uses_fallback():
    result = parse_summary("HIGHLIGHTS:\n- shipped\nBLOCKERS:\nACTION_ITEMS:\n- none")
    assert result.blockers == NO_BLOCKERS
    assert result.action_items == "- none"


def test_build_prompt_lists_every_entry():
    prompt = build_prompt(ENTRIES)
    assert "Ada Lovelace:\nYesterday: fixed the build\nToday: write docs\nBlockers: None" in prompt
    assert "Blockers: waiting on QA" in prompt


def test_claude_summarizer_parses_reply():
    client = fake_client(reply="HIGHLIGHTS:\n- a\nBLOCKERS:\n- b\nACTION_ITEMS:\n- c")
    summarizer = ClaudeSummarizer(client, model="claude-test")

    result = summarizer.generate_summary(ENTRIES)

    assert (result.highlights, result.blockers, result.action_items) == ("- a", "- b", "- c")
    assert client.messages.kwargs["model"] == "claude-test"
    assert client.messages.kwargs["max_tokens"] == 800


def test_claude_summarizer_wraps_api_errors():
    client = fake_client(error=anthropic.APIError("overloaded", request=None, body=None))

    with pytest.raises(SummarizerError):
        ClaudeSummarizer(client, model="claude-test").generate_summary(ENTRIES)


def test_create_summarizer_without_credentials(test_settings):
    assert create_summarizer(test_settings) is None


def test_create_summarizer_when_disabled(test_settings):
    test_settings.summary_enabled = False
    test_settings.anthropic_api_key = "sk-test"
    assert create_summarizer(test_settings) is None


def test_create_summarizer_with_api_key(test_settings):
    test_settings.anthropic_api_key = "sk-test"
    summarizer = create_summarizer(test_settings)
    assert isinstance(summarizer, ClaudeSummarizer)
    assert summarizer.model == test_settings.claude_model


def test_summary_retries_are_independent_of_slack_retries(test_settings):
    test_settings.anthropic_api_key = "sk-test"
    test_settings.slack_retry_attempts = 9
    test_settings.summary_max_retries = 1

    summarizer = create_summarizer(test_settings)

    assert summarizer.client.max_retries == 1
