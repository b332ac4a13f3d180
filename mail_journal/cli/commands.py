"""CLI commands for mail-journal."""

from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from mail_journal import __logo__, __version__
from mail_journal.errors import ConfigError, StoreError

app = typer.Typer(
    name="mail-journal",
    help=f"{__logo__} mail-journal - a daily journal that lives in your inbox",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} mail-journal v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """mail-journal - a daily journal that lives in your inbox."""
    pass


# ============================================================================
# Shared helpers
# ============================================================================


def _load_config_or_exit(config_path: Path | None):
    """Load config. Exits with a rich error on ConfigError."""
    from mail_journal.config.loader import load_config

    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _open_store_or_exit(config):
    from mail_journal.journal.store import SqliteEntryStore

    try:
        return SqliteEntryStore(config.db_path)
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard(config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json")):
    """Write a default configuration file."""
    from mail_journal.config.loader import get_config_path, save_config
    from mail_journal.config.schema import Config

    path = config_path or get_config_path()

    if path.exists():
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    # Plain defaults; MAIL_JOURNAL_* values (passwords) must not end up in the file
    save_config(Config.model_construct(), path)
    console.print(f"[green]✓[/green] Created config at {path}")
    console.print("\nNext steps:")
    console.print(f"  1. Edit [cyan]{path}[/cyan] with your mail account details")
    console.print("     (or set [cyan]MAIL_JOURNAL_JOURNAL_EMAIL_PASSWORD[/cyan] in the environment)")
    console.print("  2. Start: [cyan]mail-journal run[/cyan]")


# ============================================================================
# Run
# ============================================================================


@app.command()
def run(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
    once: bool = typer.Option(False, "--once", help="Run a single tick and exit"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Start the reminder/reply loop."""
    from loguru import logger

    from mail_journal.journal.service import JournalService, LoopState
    from mail_journal.logging_config import setup_logging

    setup_logging("DEBUG" if verbose else None)

    config = _load_config_or_exit(config_path)
    try:
        state = LoopState.from_config(config)
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"{__logo__} Journaling for {config.target_name} <{config.target_email}>")
    service = JournalService(state, poll_interval_s=config.poll_interval_s)

    try:
        service.run(max_ticks=1 if once else None)
    except KeyboardInterrupt:
        service.stop()
        logger.info("Shutting down...")


# ============================================================================
# Inspection
# ============================================================================


@app.command()
def status(config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json")):
    """Show reminder and journal status."""
    from mail_journal.journal.scheduler import next_reminder_at
    from mail_journal.journal.types import utc_now

    config = _load_config_or_exit(config_path)
    store = _open_store_or_exit(config)

    try:
        last_sent = store.get_last_sent_date()
        latest = store.latest_prompt()
        total = store.count()
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    next_at = next_reminder_at(utc_now(), config.utc_reminder_hour, last_sent)
    answered = latest is not None and store.get(latest.prompt_date) is not None

    table = Table(title="Mail Journal Status")
    table.add_column("Item", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Target", f"{config.target_name} <{config.target_email}>")
    table.add_row("Database", str(config.db_path))
    table.add_row("Entries", str(total))
    table.add_row("Last reminder", last_sent.isoformat() if last_sent else "[dim]never[/dim]")
    table.add_row("Next reminder (UTC)", next_at.strftime("%Y-%m-%d %H:%M"))
    if latest is not None:
        table.add_row("Latest prompt", f"{latest.prompt_date} ({'answered' if answered else 'waiting'})")
    console.print(table)


@app.command()
def show(
    entry_date: str = typer.Argument(..., help="Date of the entry (YYYY-MM-DD)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
):
    """Print the journal entry for a date."""
    try:
        day = date.fromisoformat(entry_date)
    except ValueError:
        console.print(f"[red]Invalid date: {entry_date} (expected YYYY-MM-DD)[/red]")
        raise typer.Exit(1)

    config = _load_config_or_exit(config_path)
    store = _open_store_or_exit(config)

    try:
        entry = store.get(day)
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if entry is None:
        console.print(f"[yellow]No journal entry for {day}[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]{day.strftime('%A, %B %d, %Y')}[/bold]\n")
    console.print(entry.body, markup=False)


if __name__ == "__main__":
    app()
