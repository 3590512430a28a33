"""Exceptions raised by the stand-up services."""


class StandupBotError(Exception):
    """Base class for errors raised by this package."""


class ValidationError(StandupBotError):
    """Input was rejected before any state was changed."""


class InvalidCronError(ValidationError):
    """A trigger expression could not be parsed."""


class InvalidTimezoneError(ValidationError):
    """A timezone is not a known IANA zone."""


class InvalidTimeError(ValidationError):
    """A time of day is not in HH:MM form or out of range."""


class WorkspaceNotFoundError(StandupBotError):
    """No workspace with the given identifier exists."""


class StandupNotFoundError(StandupBotError):
    """No stand-up with the given identifier exists."""


class StandupNotCompiledError(StandupBotError):
    """No compiled stand-up exists for the requested date."""


class NoEntriesError(StandupBotError):
    """A stand-up has no entries to summarize."""


class SummaryUnavailableError(StandupBotError):
    """Summaries were requested but no summarizer is configured."""


class SummarizerError(StandupBotError):
    """The summarization provider failed."""
