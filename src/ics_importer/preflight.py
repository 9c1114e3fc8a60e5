"""
Preflight checks run before an import to catch common misconfigurations early.
"""

import imaplib
import logging

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ics_importer.models import ImportConfig

logger = logging.getLogger(__name__)

_OFFLINE_KEYWORDS = frozenset(
    {
        "offline",
        "network",
        "transport",
        "unreachable",
        "not connected",
        "no route",
        "authentication failed",
        "connection refused",
        "temporary failure",
    }
)


def run_preflight_checks(cfg: ImportConfig, console: Console) -> bool:
    """Return True if the import may proceed; print issues and return False otherwise."""
    issues: list[tuple[str, str, str]] = []  # (label, detail, hint)

    issues.extend(_check_calendar(cfg))
    issues.extend(_check_imap(cfg))

    if issues:
        _print_issues(issues, console)
        return False

    return True


def _check_calendar(cfg: ImportConfig) -> list[tuple[str, str, str]]:
    import gi

    gi.require_version("ECal", "2.0")
    gi.require_version("EDataServer", "1.2")
    from gi.repository import ECal
    from gi.repository import EDataServer
    from gi.repository import GLib

    try:
        registry = EDataServer.SourceRegistry.new_sync(None)
    except Exception as e:
        logger.error("EDS registry unreachable: %s", e)
        return [("EDS registry", str(e), "Is evolution-data-server running?")]

    source = registry.ref_source(cfg.calendar_id)
    if source is None:
        logger.error("Calendar UID not found in EDS: %s", cfg.calendar_id)
        return [
            (
                "Calendar",
                f"UID not found: {cfg.calendar_id}",
                "Run: ics-calendar-importer calendars",
            )
        ]

    try:
        client = ECal.Client.connect_sync(source, ECal.ClientSourceType.EVENTS, 5, None)
    except GLib.Error as e:
        msg = e.message or str(e)
        logger.error("Cannot connect to calendar (%s): %s", cfg.calendar_id, msg)
        if any(kw in msg.lower() for kw in _OFFLINE_KEYWORDS):
            hint = "Calendar appears offline; check GNOME Online Accounts"
        else:
            hint = msg
        return [("Calendar", f"Connection failed: {msg}", hint)]

    if client.is_readonly():
        return [
            (
                "Calendar",
                f"{source.get_display_name()} is read-only",
                "Pick a writable calendar from: ics-calendar-importer calendars",
            )
        ]
    return []


def _check_imap(cfg: ImportConfig) -> list[tuple[str, str, str]]:
    if not cfg.imap_host or not cfg.imap_user:
        return [
            (
                "Mailbox",
                "imap_host / imap_user not configured",
                "Set them in the [ics-importer] section of the config file",
            )
        ]

    try:
        conn = imaplib.IMAP4_SSL(cfg.imap_host, cfg.imap_port, timeout=10)
    except OSError as e:
        logger.error("Cannot reach IMAP server %s: %s", cfg.imap_host, e)
        return [("Mailbox", f"{cfg.imap_host}:{cfg.imap_port}: {e}", "Check host, port and network")]

    try:
        conn.login(cfg.imap_user, cfg.imap_password)
        typ, _ = conn.select(cfg.imap_folder, readonly=True)
        if typ != "OK":
            return [("Mailbox", f"Folder not found: {cfg.imap_folder}", "Check imap_folder")]
    except imaplib.IMAP4.error as e:
        logger.error("IMAP login failed for %s: %s", cfg.imap_user, e)
        return [("Mailbox", f"Login failed: {e}", "Check imap_user / imap_password (app password?)")]
    finally:
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass
    return []


def _print_issues(issues: list[tuple[str, str, str]], console: Console) -> None:
    body = Text()
    for i, (label, detail, hint) in enumerate(issues):
        if i:
            body.append("\n")
        body.append(f"  ✗  {label}: ", style="bold red")
        body.append(detail, style="bold red")
        body.append(f"\n       → {hint}", style="yellow")

    console.print(Panel(body, title="[bold red]Preflight checks failed[/bold red]"))
