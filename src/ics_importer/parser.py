"""
Line-oriented iCalendar parser for single-VEVENT attachments.

Only the handful of properties the importer needs are read. Anything the
parser does not understand degrades to an empty string or None instead of
raising, so callers must check ``start``/``end`` before using them.
"""

import logging
import re
from datetime import datetime

from ics_importer.models import ParsedEvent
from ics_importer.validator import is_valid_email

_logger = logging.getLogger(__name__)

# ATTENDEE;CN=Jane;RSVP=TRUE:mailto:jane@example.com  (also <mailto:...> forms)
_MAILTO_RE = re.compile(r"mailto:([^>\s]+)", re.IGNORECASE)

# Both the parameterized (DTSTART;TZID=...:) and bare (DTSTART:) forms.
_DTSTART_PREFIXES = ("DTSTART;", "DTSTART:")
_DTEND_PREFIXES = ("DTEND;", "DTEND:")
_ATTENDEE_PREFIXES = ("ATTENDEE;", "ATTENDEE:")


def _date_token(line: str) -> str:
    """Return the value between the first and second colon of a date line."""
    parts = line.split(":")
    if len(parts) < 2:
        return ""
    return parts[1].strip()


def _int_or_zero(digits: str) -> int:
    return int(digits) if digits.isdigit() else 0


def ics_to_datetime(ics_date: str) -> datetime | None:
    """
    Convert a compact iCalendar date-time token to a naive local datetime.

    Accepts ``YYYYMMDD``, ``YYYYMMDDTHHMM`` and ``YYYYMMDDTHHMMSS`` with an
    optional trailing ``Z``. Seconds are dropped and the UTC marker is
    ignored, so the value is always read as local wall-clock time.

    Returns None (and logs) for empty or unparsable input.
    """
    if not ics_date:
        _logger.error("Empty date in .ics content")
        return None

    try:
        year = int(ics_date[0:4])
        month = int(ics_date[4:6])
        day = int(ics_date[6:8])
        hour = _int_or_zero(ics_date[9:11])
        minute = _int_or_zero(ics_date[11:13])
        return datetime(year, month, day, hour, minute)
    except ValueError as e:
        _logger.error("Error converting .ics date %r: %s", ics_date, e)
        return None


def parse_ics(ics_content: str) -> ParsedEvent:
    """Parse raw iCalendar text into a ParsedEvent.

    Long DESCRIPTION values folded over several lines (continuations start
    with a space or tab) are joined with single spaces, and literal ``\\n``
    escapes become real line breaks.
    """
    title = ""
    description = ""
    location = ""
    start_token = ""
    end_token = ""
    attendees: list[str] = []
    in_description = False

    for line in ics_content.split("\n"):
        if line.startswith("SUMMARY:"):
            title = line[len("SUMMARY:"):].strip()
            in_description = False
        elif line.startswith("DESCRIPTION:"):
            description += line[len("DESCRIPTION:"):].strip()
            in_description = True
        elif in_description and line.startswith((" ", "\t")):
            description += " " + line.strip()
        elif line.startswith("LOCATION:"):
            location = line[len("LOCATION:"):].strip()
            in_description = False
        elif line.startswith(_DTSTART_PREFIXES):
            start_token = _date_token(line)
            in_description = False
        elif line.startswith(_DTEND_PREFIXES):
            end_token = _date_token(line)
            in_description = False
        elif line.startswith(_ATTENDEE_PREFIXES):
            m = _MAILTO_RE.search(line)
            if m:
                email = m.group(1).strip()
                if is_valid_email(email):
                    attendees.append(email)
                else:
                    _logger.debug("Dropping invalid attendee address: %s", email)
            in_description = False
        else:
            in_description = False

    return ParsedEvent(
        title=title,
        description=description.replace("\\n", "\n").strip(),
        location=location,
        start=ics_to_datetime(start_token),
        end=ics_to_datetime(end_token),
        attendees=attendees,
    )
