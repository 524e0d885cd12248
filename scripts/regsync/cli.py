"""
Command-line interface for regulatory source sync.

Provides commands for listing sources, running syncs, reviewing records and
running the scheduler.
"""

import asyncio
import logging

import click
from dotenv import load_dotenv

# Load environment variables from .env file (if it exists)
load_dotenv()

from . import __version__
from .commands.review import register_review_commands
from .commands.sources import register_source_commands
from .config import config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def setup_file_logging() -> None:
    """Set up file logging if enabled."""
    if config.get("logging.file_enabled", True):
        log_file = config.logs_dir / "regsync.log"
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(config.get("logging.format")))
        logging.getLogger().addHandler(file_handler)


@click.group()
@click.version_option(version=__version__, prog_name="regsync")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """Regulatory Source Sync - orchestrate regulatory data sources."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(config.get("logging.level", "INFO"))
    setup_file_logging()


register_source_commands(cli)
register_review_commands(cli)


@cli.command()
def run() -> None:
    """Run the hourly/daily/weekly job scheduler in the foreground."""
    from .services import build_context

    context = build_context()

    async def _serve() -> None:
        context.scheduler.start()
        for job in context.scheduler.next_runs():
            click.echo(f"  {job['name']}: next run {job['next_run']}")
        try:
            await asyncio.Event().wait()
        finally:
            context.scheduler.stop()

    click.echo(click.style("Scheduler running. Press Ctrl+C to stop.", fg="green"))
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        click.echo("\nScheduler stopped.")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind")
@click.option("--port", default=8000, type=int, help="Port to bind")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def web(host: str, port: int, reload: bool) -> None:
    """Start the admin web interface."""
    try:
        import uvicorn
    except ImportError as err:
        click.echo(
            click.style(
                "Web dependencies not installed. Run: pip install -e '.[web]'",
                fg="red",
            )
        )
        raise SystemExit(1) from err

    click.echo(click.style(f"Starting web server at http://{host}:{port}", fg="green"))
    uvicorn.run("regsync.web.main:app", host=host, port=port, reload=reload)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
