"""
IMAP mailbox access: find invitation threads, read their calendar
attachments, and flag threads once they have been handled.
"""

import email
import email.policy
import imaplib
import logging
import re
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import timedelta
from email.message import Message

from ics_importer.models import CALENDAR_MIME_TYPE
from ics_importer.models import CalendarImportError

_logger = logging.getLogger(__name__)

# IMAP dates are always English ("17-Oct-2026"), independent of the locale.
_IMAP_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_MESSAGE_ID_RE = re.compile(r"<[^>]+>")


@dataclass
class MailAttachment:
    filename: str
    content_type: str
    payload: bytes
    charset: str = "utf-8"

    def data_as_string(self) -> str:
        try:
            return self.payload.decode(self.charset, errors="replace")
        except LookupError:
            # Unknown charset label in the MIME header
            return self.payload.decode("utf-8", errors="replace")


@dataclass
class MailMessage:
    uid: str
    subject: str
    thread_key: str
    attachments: list[MailAttachment] = field(default_factory=list)

    def calendar_attachments(self) -> list[MailAttachment]:
        return [a for a in self.attachments if a.content_type == CALENDAR_MIME_TYPE]


@dataclass
class MailThread:
    key: str
    messages: list[MailMessage] = field(default_factory=list)

    @property
    def uids(self) -> list[str]:
        return [m.uid for m in self.messages]


def build_search_criteria(since_days: int, processed_flag: str, today: date | None = None) -> str:
    """Return an IMAP SEARCH key for recent messages not yet flagged as processed."""
    since = (today or date.today()) - timedelta(days=since_days)
    since_str = f"{since.day:02d}-{_IMAP_MONTHS[since.month - 1]}-{since.year}"
    return f"(SINCE {since_str} UNKEYWORD {processed_flag})"


def thread_key_for(msg: Message, uid: str) -> str:
    """Return the Message-ID of the thread root, falling back to the message itself."""
    for header in ("References", "In-Reply-To", "Message-ID"):
        ids = _MESSAGE_ID_RE.findall(str(msg.get(header, "")))
        if ids:
            return ids[0]
    return f"uid:{uid}"


def parse_message(uid: str, raw: bytes) -> MailMessage:
    """Build a MailMessage from raw RFC 822 bytes.

    Parts with a filename or ``Content-Disposition: attachment`` are
    attachments. When a message carries no calendar attachment at all, its
    inline ``text/calendar`` parts are used instead, so an invitation is never
    read twice from the same message.
    """
    msg = email.message_from_bytes(raw, policy=email.policy.default)
    attachments: list[MailAttachment] = []
    inline_calendars: list[MailAttachment] = []

    for part in msg.walk():
        if part.is_multipart():
            continue
        filename = part.get_filename()
        item = MailAttachment(
            filename=filename or "",
            content_type=part.get_content_type(),
            payload=part.get_payload(decode=True) or b"",
            charset=part.get_content_charset() or "utf-8",
        )
        if filename or part.get_content_disposition() == "attachment":
            attachments.append(item)
        elif item.content_type == CALENDAR_MIME_TYPE:
            inline_calendars.append(item)

    if not any(a.content_type == CALENDAR_MIME_TYPE for a in attachments):
        attachments.extend(inline_calendars)

    return MailMessage(
        uid=uid,
        subject=str(msg.get("Subject", "")),
        thread_key=thread_key_for(msg, uid),
        attachments=attachments,
    )


def _raw_from_fetch(fetch_data) -> bytes | None:
    """Pull the message literal out of an imaplib FETCH response."""
    for item in fetch_data or ():
        if isinstance(item, tuple) and len(item) >= 2:
            return item[1]
    return None


class ImapMailbox:
    """Wrapper for the IMAP operations the importer needs."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = 993,
        folder: str = "INBOX",
    ):
        self.host = host
        self.user = user
        self.password = password
        self.port = port
        self.folder = folder
        self.conn: imaplib.IMAP4 | None = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def connect(self, timeout: int = 30):
        """Log in over IMAPS and select the configured folder."""
        try:
            self.conn = imaplib.IMAP4_SSL(self.host, self.port, timeout=timeout)
            self.conn.login(self.user, self.password)
            typ, data = self.conn.select(self.folder)
        except (imaplib.IMAP4.error, OSError) as e:
            raise CalendarImportError(f"Failed to connect to IMAP server {self.host}: {e}") from e
        if typ != "OK":
            raise CalendarImportError(f"Cannot select folder {self.folder!r}: {data}")

    def close(self):
        if self.conn is None:
            return
        try:
            self.conn.close()
            self.conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            _logger.debug("Ignoring error while closing IMAP connection: %s", e)
        self.conn = None

    def search(self, criteria: str) -> list[MailThread]:
        """Return matching messages grouped into threads, in mailbox order."""
        if not self.conn:
            raise CalendarImportError("Mailbox not connected")

        typ, data = self.conn.uid("SEARCH", None, criteria)
        if typ != "OK":
            raise CalendarImportError(f"IMAP search failed: {data}")

        uids = data[0].split() if data and data[0] else []
        _logger.debug("IMAP search %s matched %d message(s)", criteria, len(uids))

        threads: dict[str, MailThread] = {}
        for raw_uid in uids:
            uid = raw_uid.decode() if isinstance(raw_uid, bytes) else str(raw_uid)
            # BODY.PEEK leaves the \Seen flag untouched
            typ, fetch_data = self.conn.uid("FETCH", uid, "(BODY.PEEK[])")
            raw = _raw_from_fetch(fetch_data) if typ == "OK" else None
            if raw is None:
                _logger.warning("Could not fetch message UID %s, skipping", uid)
                continue
            message = parse_message(uid, raw)
            threads.setdefault(message.thread_key, MailThread(message.thread_key))
            threads[message.thread_key].messages.append(message)

        return list(threads.values())

    def mark_processed(self, thread: MailThread, flag: str):
        """Set ``flag`` on every message of ``thread``."""
        if not self.conn:
            raise CalendarImportError("Mailbox not connected")
        if not thread.uids:
            return
        typ, data = self.conn.uid("STORE", ",".join(thread.uids), "+FLAGS", f"({flag})")
        if typ != "OK":
            raise CalendarImportError(f"Failed to flag thread {thread.key}: {data}")
