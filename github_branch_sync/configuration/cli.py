"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import sys
from pathlib import Path

import typer
from dotenv import load_dotenv
from typer import Option
from typing_extensions import Annotated

from github_branch_sync.configuration.env import Settings
from github_branch_sync.configuration.store import SyncConfigStore
from github_branch_sync.scheduler import IntervalScheduler, register_sync
from github_branch_sync.synchronize.engine import SyncEngine, get_sync_interval
from github_branch_sync.synchronize.exceptions import ConfigError
from github_branch_sync.synchronize.results import SyncCycleResult
from github_branch_sync.utils import configure_logging

load_dotenv()

typer_app = typer.Typer(pretty_exceptions_show_locals=False, help="Mirror a GitHub branch into a local directory.")


def echo_cycle_result(result: SyncCycleResult) -> None:
    """Print the outcome of a sync cycle."""
    message = f"Sync outcome: {result.outcome.value}"
    if result.sha:
        message += f" (sha {result.sha})"
    if result.error is not None:
        typer.echo(f"{message}: {result.error}", err=True)
    else:
        typer.echo(message)


@typer_app.command(name="sync")
def sync_cli(
    config_path: Annotated[Path | None, Option("--config", envvar="CONFIG_PATH", help="Path to the sync configuration YAML file.")] = None,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")] = False,
) -> None:
    """Run a single sync cycle."""
    settings = Settings()
    configure_logging(debug or settings.DEBUG)
    engine = SyncEngine.from_settings(settings, config_path)

    result = asyncio.run(engine.run_cycle())
    echo_cycle_result(result)
    if not result.succeeded:
        sys.exit(1)


@typer_app.command(name="watch")
def watch_cli(
    config_path: Annotated[Path | None, Option("--config", envvar="CONFIG_PATH", help="Path to the sync configuration YAML file.")] = None,
    tick_interval: Annotated[float | None, Option(envvar="TICK_INTERVAL", help="Seconds between sync checks.")] = None,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")] = False,
) -> None:
    """Check for changes periodically until interrupted."""
    settings = Settings()
    configure_logging(debug or settings.DEBUG)
    engine = SyncEngine.from_settings(settings, config_path)

    scheduler = IntervalScheduler(tick_interval if tick_interval is not None else settings.TICK_INTERVAL)
    register_sync(scheduler, engine)
    typer.echo(f"Watching {engine.store.path} every {scheduler.interval} seconds - press Ctrl+C to stop")
    try:
        asyncio.run(scheduler.run())
    except KeyboardInterrupt:
        typer.echo("Stopped")


@typer_app.command(name="status")
def status_cli(
    config_path: Annotated[Path | None, Option("--config", envvar="CONFIG_PATH", help="Path to the sync configuration YAML file.")] = None,
) -> None:
    """Show the configured target and the last sync state."""
    settings = Settings()
    store = SyncConfigStore(config_path or settings.CONFIG_PATH)
    try:
        document = store.load()
    except ConfigError as e:
        typer.echo(str(e), err=True)
        sys.exit(1)

    state = document.sync_state()
    typer.echo(f"Repository: {document.owner}/{document.repo}")
    typer.echo(f"Branch: {document.branch}")
    typer.echo(f"Target directory: {settings.CONTENT_ROOT / (document.target_dir or '')}")
    typer.echo(f"Authenticated: {'yes' if document.github_token else 'no'}")
    typer.echo(f"Sync interval: {int(get_sync_interval(document.github_token).total_seconds())} seconds")
    typer.echo(f"Last synced commit: {state.last_sha or 'never'}")
    typer.echo(f"Last sync time: {state.last_sync_time.isoformat() if state.last_sync_time else 'never'}")


if __name__ == "__main__":
    typer_app()
