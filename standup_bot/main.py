"""Main entry point for the Stand-up bot."""

from standup_bot.slack.bot import start_bot


def main():
    """Start the Stand-up bot."""
    start_bot()


if __name__ == "__main__":
    main()
