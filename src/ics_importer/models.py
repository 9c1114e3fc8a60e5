"""
Pure data models. No EDS or IMAP imports.
"""

import enum
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timedelta
from pathlib import Path

DEFAULT_CONFIG = Path.home() / ".config/ics-calendar-importer.conf"

CALENDAR_MIME_TYPE = "text/calendar"
DEFAULT_PROVENANCE_NOTE = "Imported automatically by script"

# Subjects produced by Yandex Calendar invitations.
DEFAULT_CANCEL_KEYWORDS = ("Событие", "отменено")
DEFAULT_UPDATE_PREFIXES = ("Изменение события",)


class CalendarImportError(Exception):
    """Base exception for calendar import errors."""

    pass


class Intent(enum.Enum):
    """What an inbound message asks the calendar to do."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class ParsedEvent:
    """Event fields extracted from one iCalendar attachment."""

    title: str = ""
    description: str = ""
    location: str = ""
    start: datetime | None = None
    end: datetime | None = None
    attendees: list[str] = field(default_factory=list)

    @property
    def has_time_window(self) -> bool:
        return self.start is not None

    @property
    def window(self) -> tuple[datetime | None, datetime | None]:
        """(start, end) for store queries; a missing end collapses onto start.

        Both are None when start is missing, so check ``has_time_window`` first.
        """
        if self.start is None:
            return None, None
        return self.start, self.end or self.start


@dataclass
class EventOptions:
    """Optional fields passed to the calendar store on creation."""

    description: str = ""
    location: str = ""
    guests: str = ""  # comma-joined addresses
    send_invites: bool = False


@dataclass
class ImportConfig:
    """Configuration for an import run."""

    calendar_id: str
    imap_host: str = ""
    imap_port: int = 993
    imap_user: str = ""
    imap_password: str = ""
    imap_folder: str = "INBOX"
    since_days: int = 1
    processed_flag: str = "Processed"
    cancel_keywords: tuple[str, ...] = DEFAULT_CANCEL_KEYWORDS
    update_prefixes: tuple[str, ...] = DEFAULT_UPDATE_PREFIXES
    provenance_note: str = DEFAULT_PROVENANCE_NOTE
    update_lookaround: timedelta = timedelta(hours=24)
    dry_run: bool = False
    verbose: bool = False
    yes: bool = False  # Auto-confirm without prompting


@dataclass
class ImportStats:
    """Statistics for an import run."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: int = 0
