"""CLI commands for bggtop."""

import json
import logging
import signal
import sys
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from types import FrameType

import click
import structlog

from bggtop import __version__
from bggtop.config.constants import COMPONENT_CLI
from bggtop.config.error_hints import format_validation_error
from bggtop.config.loader import ConfigLoader, ConfigValidationError
from bggtop.config.schemas import AppConfig
from bggtop.fetch.client import BggClient
from bggtop.fetch.config import FetchConfig
from bggtop.fetch.metrics import FetchMetrics
from bggtop.fetch.models import SourceFetchError
from bggtop.ingest.puller import pull_games
from bggtop.observability.logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
)
from bggtop.report.report import format_report, make_report
from bggtop.settings import get_settings
from bggtop.stabilizer.errors import StabilizationFailedError
from bggtop.stabilizer.events import (
    NoteError,
    NoteGameProgress,
    NoteUserResolved,
    ProgressEvent,
    Stable,
)
from bggtop.stabilizer.orchestrator import stabilize
from bggtop.store.errors import StateStoreError
from bggtop.store.metrics import StoreMetrics
from bggtop.store.store import StateStore


logger = structlog.get_logger()

# Print a heartbeat every this many newly classified raters
RATER_HEARTBEAT = 50


@dataclass
class CliContext:
    """Options shared by every command."""

    config_path: Path
    state_path: Path
    user_agent: str | None
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def bind_log(self, command: str) -> structlog.typing.FilteringBoundLogger:
        """Logger bound to this invocation."""
        return logger.bind(component=COMPONENT_CLI, run_id=self.run_id, command=command)

    def fetch_config(self, config: AppConfig) -> FetchConfig:
        """Client settings for this invocation."""
        if self.user_agent:
            return FetchConfig(page_size=config.page_size, user_agent=self.user_agent)
        return FetchConfig(page_size=config.page_size)


def _load_config(ctx: CliContext, log: structlog.typing.FilteringBoundLogger) -> AppConfig:
    """Load the config file or exit with the validation errors."""
    loader = ConfigLoader(run_id=ctx.run_id)
    try:
        return loader.load(ctx.config_path)
    except ConfigValidationError as e:
        log.warning("config_load_failed", error=str(e))
        click.echo(f"Configuration validation failed: {ctx.config_path}", err=True)
        for error in e.errors:
            formatted = format_validation_error(
                location=error["loc"],
                message=error["msg"],
                error_type=error.get("type", "unknown"),
            )
            click.echo(f"  - {formatted}", err=True)
        sys.exit(1)


@dataclass
class BalanceProgress:
    """Counters and colored output for a balance run."""

    raters_seen: int = 0
    balanced_games: int = 0
    errors: int = 0
    pages_folded: int = 0

    def __call__(self, event: ProgressEvent) -> None:
        """Handle one progress event."""
        if isinstance(event, NoteUserResolved):
            self.raters_seen += 1
            if self.raters_seen % RATER_HEARTBEAT == 0:
                click.secho(f"Found another {RATER_HEARTBEAT} raters.", fg="green")
        elif isinstance(event, NoteGameProgress):
            self.pages_folded += 1
            click.secho(
                f"{event.game.name}: page {event.game.page - 1} folded "
                f"({event.game.votes} trusted votes).",
                fg="green",
            )
        elif isinstance(event, NoteError):
            self.errors += 1
            click.secho(f"Game {event.game_id}: {event.error}", fg="red")
        elif isinstance(event, Stable):
            self.balanced_games += 1
            click.secho(f"{event.game.name} is balanced.", fg="yellow")
        else:
            msg = f"Unknown progress event: {event!r}"
            raise TypeError(msg)

    def summary(self) -> str:
        """One-line summary of the run."""
        return (
            f"Seen {self.raters_seen} raters, {self.balanced_games} balanced games, "
            f"{self.errors} errors, {self.pages_folded} pages folded."
        )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the YAML config file (default: $BGGTOP_CONFIG_PATH or bggtop.yaml).",
)
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the SQLite database (default: $BGGTOP_DB_PATH or top.db).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable debug logging.",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Output logs in JSON format.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    state_path: Path | None,
    verbose: bool,
    json_logs: bool,
) -> None:
    """Re-evaluate the BoardGameGeek top list ignoring overhyped raters."""
    settings = get_settings()
    configure_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        json_format=json_logs,
    )
    cli_ctx = CliContext(
        config_path=config_path or settings.config_path,
        state_path=state_path or settings.db_path,
        user_agent=settings.user_agent,
    )
    bind_run_context(cli_ctx.run_id)
    ctx.call_on_close(clear_run_context)
    ctx.obj = cli_ctx


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_obj
def new(ctx: CliContext, force: bool) -> None:
    """Create the config file and an empty database."""
    log = ctx.bind_log("new")
    if ctx.config_path.exists() and not force:
        click.echo(
            f"Config file {ctx.config_path} already exists; use --force to overwrite.",
            err=True,
        )
        sys.exit(1)

    ConfigLoader(run_id=ctx.run_id).write_default(ctx.config_path)
    try:
        with StateStore(ctx.state_path, run_id=ctx.run_id) as store:
            version = store.get_schema_version()
    except StateStoreError as e:
        log.error("store_init_failed", error=str(e))
        click.echo(f"Cannot create database: {e}", err=True)
        sys.exit(1)

    log.info("structure_created", schema_version=version)
    click.echo("Created initial structure files.")
    click.echo(f"  Config: {ctx.config_path}")
    click.echo(f"  Database: {ctx.state_path}")


@cli.command()
@click.pass_obj
def pull(ctx: CliContext) -> None:
    """Replace stored games with every game having at least `limit` votes."""
    log = ctx.bind_log("pull")
    config = _load_config(ctx, log)

    click.echo("Starting download.")
    try:
        with (
            StateStore(ctx.state_path, run_id=ctx.run_id) as store,
            BggClient(ctx.fetch_config(config), run_id=ctx.run_id) as client,
        ):
            total = pull_games(
                store,
                client,
                config.limit,
                progress=lambda page, _: click.echo(f"Downloaded page: {page}"),
                run_id=ctx.run_id,
            )
    except SourceFetchError as e:
        log.error("pull_failed", **e.to_dict())
        click.secho(f"Download failed: {e}", fg="red", err=True)
        sys.exit(1)
    except StateStoreError as e:
        log.error("pull_failed", error=str(e))
        click.secho(f"Database error: {e}", fg="red", err=True)
        sys.exit(1)

    log.info("store_metrics", **StoreMetrics.get_instance().to_dict())
    click.echo(f"Finished download. {total} games stored.")


@cli.command()
@click.pass_obj
def balance(ctx: CliContext) -> None:
    """Balance unstable games until none are left.

    Ctrl-C stops every worker after its current page; run again to resume.
    """
    log = ctx.bind_log("balance")
    config = _load_config(ctx, log)
    fetch_config = ctx.fetch_config(config)

    cancel_event = threading.Event()

    def _on_sigint(signum: int, frame: FrameType | None) -> None:  # noqa: ARG001
        if not cancel_event.is_set():
            click.secho("Stopping after the current pages...", fg="yellow", err=True)
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, _on_sigint)
    progress = BalanceProgress()
    click.echo("Start balancing.")
    try:
        result = stabilize(
            config,
            cancel_event,
            progress,
            store_factory=lambda: StateStore(ctx.state_path, run_id=ctx.run_id),
            source_factory=lambda: BggClient(fetch_config, run_id=ctx.run_id),
            run_id=ctx.run_id,
        )
    except StabilizationFailedError as e:
        click.echo(progress.summary())
        click.secho(f"Balancing failed on game {e.game_id}: {e.cause}", fg="red", err=True)
        _echo_remaining(ctx, progress.balanced_games)
        sys.exit(1)
    except StateStoreError as e:
        log.error("balance_failed", error=str(e))
        click.secho(f"Database error: {e}", fg="red", err=True)
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        log.info("fetch_metrics", **FetchMetrics.get_instance().to_dict())
        log.info("store_metrics", **StoreMetrics.get_instance().to_dict())

    click.echo(progress.summary())
    if result.interrupted:
        click.secho(
            f"Interrupted; {result.interrupted} games left for the next run.",
            fg="yellow",
        )
    else:
        click.echo("Finished balancing.")


def _echo_remaining(ctx: CliContext, stabilized: int) -> None:
    """Report how far a failed run got."""
    try:
        with StateStore(ctx.state_path, run_id=ctx.run_id) as store:
            unstable = store.count_unstable_games()
    except StateStoreError as e:
        click.echo(f"  Stable this run: {stabilized}; unstable count unavailable: {e}")
        return
    click.echo(f"  Stable this run: {stabilized}; still unstable: {unstable}")


@cli.command()
@click.pass_obj
def report(ctx: CliContext) -> None:
    """Print the re-ranked games once every game is balanced."""
    with StateStore(ctx.state_path, run_id=ctx.run_id) as store:
        games = make_report(store)

    if not games:
        click.echo("Game list is not stable enough.")
        return
    click.echo(format_report(games))


@cli.command("db-stats")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
@click.pass_obj
def db_stats(ctx: CliContext, json_output: bool) -> None:
    """Display state database statistics."""
    with StateStore(ctx.state_path, run_id=ctx.run_id) as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()

    if json_output:
        click.echo(json.dumps({"schema_version": schema_version, "counts": stats}, indent=2))
        return

    click.echo("State Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo("")
    click.echo("Row Counts:")
    for name, count in sorted(stats.items()):
        click.echo(f"  {name}: {count}")
