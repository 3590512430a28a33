"""Slack bot initialization and startup."""

import logging
import signal
import sys

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler
from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError

from standup_bot.config import Settings, settings
from standup_bot.log import configure_logging
from standup_bot.models import SessionLocal, engine, init_db
from standup_bot.services import Services, build_services

console = Console()
logger = logging.getLogger(__name__)


def create_app(config: Settings, services_factory=build_services) -> tuple[App, Services]:
    """Create the Slack app, wire services and register handlers."""
    app = App(
        token=config.slack_bot_token,
        signing_secret=config.slack_signing_secret,
    )
    services = services_factory(config, app.client, SessionLocal)

    from standup_bot.slack import commands, events, modals

    commands.register(app, services)
    modals.register(app, services)
    events.register(app, services)

    @app.error
    def handle_errors(error, body):
        logger.error("Unhandled error in Slack app: %s", error, exc_info=error)

    return app, services


def start_bot(config: Settings = settings):
    """Start the bot in socket mode."""
    configure_logging(config.log_level)
    console.print("[bold green]🚀 Starting Stand-up Bot...[/bold green]")

    # Initialize database
    try:
        init_db(engine)
    except SQLAlchemyError as e:
        console.print(f"[bold red]✗ Could not initialize database:[/bold red] {e}")
        sys.exit(1)
    console.print("[green]✓[/green] Database initialized")

    # Create app with handlers
    app, services = create_app(config)
    console.print("[green]✓[/green] Slack handlers registered")

    if services.summarizer is None:
        console.print("[yellow]![/yellow] AI summaries disabled (no credentials or SUMMARY_ENABLED=false)")

    # Install per-workspace timers
    services.scheduler.start()
    count = services.scheduler.schedule_all()
    console.print(f"[green]✓[/green] Scheduler running for {count} workspace(s)")

    # Start socket mode
    handler = SocketModeHandler(app, config.slack_app_token)
    signal.signal(signal.SIGTERM, lambda signum, frame: sys.exit(0))
    console.print("[bold green]✓ Bot is running! Press Ctrl+C to stop.[/bold green]")
    try:
        handler.start()
    except KeyboardInterrupt:
        pass
    finally:
        services.scheduler.shutdown()
        console.print("[yellow]Scheduler stopped, bye![/yellow]")
