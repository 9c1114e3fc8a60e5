"""
Rendering helpers for the inspect/calendars commands.

Importable functions:
  list_calendars(entries, console)      render a Rich table of all calendars
  dump_event(event, console, raw=None)  render one parsed event in a Rich Panel
"""

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from ics_importer.models import ParsedEvent


def list_calendars(entries, console: Console) -> None:
    """Render (name, account, mode, mode_style, uid) entries as a Rich table."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Display Name", style="bold")
    table.add_column("Account")
    table.add_column("Mode")
    table.add_column("UID", style="dim")

    for name, account, mode, mode_style, uid in entries:
        table.add_row(name, account, Text(mode, style=mode_style), uid)

    console.print(table)


def _fmt_time(value) -> Text:
    if value is None:
        return Text("(missing)", style="red")
    return Text(value.strftime("%Y-%m-%d %H:%M"))


def dump_event(event: ParsedEvent, console: Console, raw: str | None = None) -> None:
    """Render a parsed event as a Rich Panel, optionally followed by its source."""
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold")
    grid.add_column(overflow="fold")

    grid.add_row("Title", event.title or Text("(empty)", style="dim"))
    grid.add_row("Start", _fmt_time(event.start))
    grid.add_row("End", _fmt_time(event.end))
    grid.add_row("Location", event.location or Text("(empty)", style="dim"))
    grid.add_row("Attendees", ", ".join(event.attendees) or Text("(none)", style="dim"))
    grid.add_row("Description", event.description or Text("(empty)", style="dim"))

    console.print(Panel(grid, title="[bold]Parsed event[/bold]", expand=False))

    if raw is not None:
        console.print(Syntax(raw, "text", line_numbers=True, word_wrap=True))
