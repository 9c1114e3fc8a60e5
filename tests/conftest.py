"""
Shared pytest fixtures and iCal helpers.
"""

import pytest

from ics_importer.deletion_memory import DeletionMemory
from ics_importer.models import ImportConfig
from ics_importer.models import ImportStats
from ics_importer.reconciler import EventReconciler
from tests.fake_store import FakeCalendarStore

CALENDAR_ID = "calendar-test"


def make_ics(
    summary: str = "Standup",
    start: str | None = "20240115T090000",
    end: str | None = "20240115T093000",
    description: str | None = None,
    location: str | None = None,
    attendees: tuple = (),
    tzid: str | None = "Europe/Moscow",
) -> str:
    """Return a VCALENDAR with a single VEVENT, CRLF line endings.

    ``start``/``end`` of None omit the property. With ``tzid`` None the bare
    ``DTSTART:`` form is written instead of ``DTSTART;TZID=...:``.
    """
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//TestSuite//EN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        "UID:test-uid@example.com",
        f"SUMMARY:{summary}",
    ]
    param = f";TZID={tzid}" if tzid else ""
    if start is not None:
        lines.append(f"DTSTART{param}:{start}")
    if end is not None:
        lines.append(f"DTEND{param}:{end}")
    if description is not None:
        lines.append(f"DESCRIPTION:{description}")
    if location is not None:
        lines.append(f"LOCATION:{location}")
    for address in attendees:
        lines.append(f"ATTENDEE;CN=Guest;ROLE=REQ-PARTICIPANT:mailto:{address}")
    lines += ["DTSTAMP:20240110T120000Z", "END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def import_config():
    return ImportConfig(calendar_id=CALENDAR_ID)


@pytest.fixture
def store():
    return FakeCalendarStore()


@pytest.fixture
def memory():
    return DeletionMemory()


@pytest.fixture
def import_stats():
    return ImportStats()


@pytest.fixture
def reconciler(store, import_config, import_stats, memory):
    return EventReconciler(store, import_config, import_stats, memory)
