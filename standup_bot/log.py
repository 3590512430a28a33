"""Logging setup rendered through rich."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str = "INFO") -> None:
    """Route all standup_bot loggers through a single rich handler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Bolt and APScheduler are chatty at INFO
    logging.getLogger("slack_bolt").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
