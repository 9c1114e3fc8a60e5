"""
Command-line interface for the ICS calendar importer.
"""

import logging
from configparser import ConfigParser
from dataclasses import dataclass
from dataclasses import field
from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ics_importer.classifier import SubjectClassifier
from ics_importer.debug import dump_event
from ics_importer.debug import list_calendars
from ics_importer.models import DEFAULT_CONFIG
from ics_importer.models import CalendarImportError
from ics_importer.models import ImportConfig
from ics_importer.parser import parse_ics

CONFIG_SECTION = "ics-importer"

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Import, update and cancel calendar events from .ics mail attachments.",
)

console = Console()


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    parser.read(config_path, encoding="utf-8")
    if CONFIG_SECTION not in parser:
        return {}
    return dict(parser[CONFIG_SECTION])


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _build_config(
    calendar: str | None,
    dry_run: bool = False,
    yes: bool = False,
    require_calendar: bool = True,
) -> ImportConfig:
    config_file = _load_config_file(state.config_path)
    calendar_id = calendar or config_file.get("calendar_id", "")

    if require_calendar and not calendar_id:
        console.print(
            "[bold red]Error:[/] A target calendar must be provided via "
            "[cyan]--calendar[/] or [cyan]calendar_id[/] in the config file."
        )
        raise typer.Exit(1)

    cfg = ImportConfig(calendar_id=calendar_id, dry_run=dry_run, verbose=state.verbose, yes=yes)
    try:
        for key in ("imap_host", "imap_user", "imap_password", "imap_folder",
                    "processed_flag", "provenance_note"):
            if key in config_file:
                setattr(cfg, key, config_file[key])
        if "imap_port" in config_file:
            cfg.imap_port = int(config_file["imap_port"])
        if "since_days" in config_file:
            cfg.since_days = int(config_file["since_days"])
        if "update_lookaround_hours" in config_file:
            cfg.update_lookaround = timedelta(hours=float(config_file["update_lookaround_hours"]))
    except ValueError as e:
        console.print(f"[bold red]Error:[/] Invalid value in {state.config_path}: {e}")
        raise typer.Exit(1) from None
    if "cancel_keywords" in config_file:
        cfg.cancel_keywords = _split_list(config_file["cancel_keywords"])
    if "update_prefixes" in config_file:
        cfg.update_prefixes = _split_list(config_file["update_prefixes"])
    return cfg


def _run_import(cfg: ImportConfig) -> None:
    """Core import runner: display panel, confirm, run, show results."""
    from ics_importer.eds_store import EDSCalendarStore
    from ics_importer.eds_store import get_calendar_display_info
    from ics_importer.importer import CalendarImporter
    from ics_importer.mailbox import ImapMailbox
    from ics_importer.preflight import run_preflight_checks

    if not run_preflight_checks(cfg, console):
        raise typer.Exit(1)

    cal_name, cal_account, cal_uid = get_calendar_display_info(cfg.calendar_id)
    cal_display = cal_name + (f" ({cal_account})" if cal_account else "")

    # -- Info panel ----------------------------------------------------------
    info = Text()
    info.append("  Mailbox:   ", style="bold")
    info.append(f"{cfg.imap_user}@{cfg.imap_host}/{cfg.imap_folder}\n")
    info.append("  Calendar:  ", style="bold")
    info.append(f"{cal_display}\n")
    info.append(f"             {cal_uid}\n", style="dim")
    info.append("  Window:    ", style="bold")
    info.append(f"last {cfg.since_days} day(s), not flagged {cfg.processed_flag}")
    if cfg.dry_run:
        info.append("\n  Mode:      ")
        info.append("DRY RUN", style="bold magenta")

    console.print(Panel(info, title="[bold]ICS Calendar Importer[/bold]"))

    # -- Confirmation --------------------------------------------------------
    if not cfg.yes and not cfg.dry_run:
        typer.confirm("Proceed?", abort=True)

    # -- Run -----------------------------------------------------------------
    try:
        with EDSCalendarStore(cfg.calendar_id) as store, ImapMailbox(
            cfg.imap_host, cfg.imap_user, cfg.imap_password, cfg.imap_port, cfg.imap_folder
        ) as mailbox:
            stats = CalendarImporter(cfg, mailbox, store).run()
    except CalendarImportError as e:
        console.print(f"[bold red]Import failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None
    except Exception as e:
        console.print_exception()
        console.print(f"[bold red]Unexpected error:[/] {e}")
        raise typer.Exit(1) from e

    # -- Results table -------------------------------------------------------
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Added", str(stats.added))
    results.add_row("Updated", str(stats.updated))
    results.add_row("Deleted", str(stats.deleted))
    results.add_row("Skipped", str(stats.skipped))
    error_val = Text(str(stats.errors))
    if stats.errors == 0:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)

    console.print(Panel(results, title="[bold]Results[/bold]", expand=False))

    if stats.errors:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

_CAL_OPT = Annotated[
    str | None,
    typer.Option("--calendar", "-C", help="Target calendar EDS UID (overrides config)"),
]
_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")]


@app.command()
def run(
    calendar: _CAL_OPT = None,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
) -> None:
    """Process unhandled invitation mails and apply them to the calendar."""
    _run_import(_build_config(calendar, dry_run=dry_run, yes=yes))


@app.command()
def inspect(
    ics_file: Annotated[Path, typer.Argument(help=".ics file to parse", exists=True, dir_okay=False)],
    raw: Annotated[bool, typer.Option("--raw", help="Also print the file contents")] = False,
) -> None:
    """Parse an .ics file and show what the importer would extract."""
    content = ics_file.read_text(encoding="utf-8", errors="replace")
    dump_event(parse_ics(content), console, raw=content if raw else None)


@app.command()
def classify(
    subject: Annotated[str, typer.Argument(help="Mail subject line")],
) -> None:
    """Show how a mail subject would be classified."""
    cfg = _build_config(None, require_calendar=False)
    intent = SubjectClassifier.from_config(cfg).classify(subject)
    console.print(f"[bold]{intent.value.upper()}[/bold]")


@app.command()
def calendars() -> None:
    """List calendars available in Evolution Data Server."""
    from ics_importer.eds_store import list_calendar_entries

    try:
        entries = list_calendar_entries()
    except Exception as e:
        console.print(f"[bold red]Error:[/] Failed to connect to Evolution Data Server: {e}")
        raise typer.Exit(1) from None

    if not entries:
        console.print("[yellow]No calendars found in Evolution Data Server.[/]")
        return
    list_calendars(entries, console)


@app.command()
def status() -> None:
    """Show the resolved configuration."""
    config_exists = state.config_path.exists()
    cfg = _build_config(None, require_calendar=False)

    info = Text()
    info.append("  Config:      ", style="bold")
    info.append(str(state.config_path) + " ")
    info.append(
        "✓" if config_exists else "(not found)", style="green" if config_exists else "red"
    )
    rows = (
        ("Calendar", cfg.calendar_id or "(not set)"),
        ("IMAP", f"{cfg.imap_user or '?'}@{cfg.imap_host or '?'}:{cfg.imap_port}"),
        ("Folder", cfg.imap_folder),
        ("Since", f"{cfg.since_days} day(s)"),
        ("Flag", cfg.processed_flag),
        ("Cancel", " + ".join(cfg.cancel_keywords) or "(none)"),
        ("Update", " | ".join(cfg.update_prefixes) or "(none)"),
        ("Lookaround", str(cfg.update_lookaround)),
    )
    for label, value in rows:
        info.append(f"\n  {label + ':':<13}", style="bold")
        info.append(value)

    console.print(Panel(info, title="[bold]Status[/bold]"))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
