"""Stand-up bot: scheduled Slack check-ins with compiled digests."""

__version__ = "0.1.0"
