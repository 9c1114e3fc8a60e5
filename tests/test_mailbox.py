"""
Unit tests for the IMAP mailbox wrapper: search criteria, MIME parsing,
thread grouping, and processed flags.  A stub connection replaces imaplib.
"""

from datetime import date
from email.message import EmailMessage

import pytest

from ics_importer.mailbox import ImapMailbox
from ics_importer.mailbox import MailAttachment
from ics_importer.mailbox import MailThread
from ics_importer.mailbox import build_search_criteria
from ics_importer.mailbox import parse_message
from ics_importer.models import CALENDAR_MIME_TYPE
from ics_importer.models import CalendarImportError
from ics_importer.parser import parse_ics
from tests.conftest import make_ics
from tests.fake_mailbox import FakeImapConnection

# ---------------------------------------------------------------------------
# MIME construction helpers
# ---------------------------------------------------------------------------


def _invitation(
    subject: str,
    ics: str,
    message_id: str = "<m1@example.com>",
    references: str | None = None,
    inline: bool = False,
) -> bytes:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "calendar@example.com"
    msg["To"] = "me@example.com"
    msg["Message-ID"] = message_id
    if references:
        msg["References"] = references
    if inline:
        msg.set_content(ics, subtype="calendar")
    else:
        msg.set_content("You have been invited.")
        msg.add_attachment(ics, subtype="calendar", filename="invite.ics")
    return msg.as_bytes()


# ---------------------------------------------------------------------------
# build_search_criteria
# ---------------------------------------------------------------------------


def test_search_criteria_for_one_day():
    criteria = build_search_criteria(1, "Processed", today=date(2026, 10, 18))
    assert criteria == "(SINCE 17-Oct-2026 UNKEYWORD Processed)"


def test_search_criteria_crosses_year_boundary():
    criteria = build_search_criteria(3, "Imported", today=date(2026, 1, 2))
    assert criteria == "(SINCE 30-Dec-2025 UNKEYWORD Imported)"


# ---------------------------------------------------------------------------
# parse_message
# ---------------------------------------------------------------------------


def test_parse_message_extracts_calendar_attachment():
    ics = make_ics("Standup")
    message = parse_message("7", _invitation("Приглашение: Standup", ics))

    assert message.uid == "7"
    assert message.subject == "Приглашение: Standup"
    assert message.thread_key == "<m1@example.com>"
    attachments = message.calendar_attachments()
    assert len(attachments) == 1
    assert attachments[0].filename == "invite.ics"
    assert parse_ics(attachments[0].data_as_string()).title == "Standup"


def test_inline_calendar_part_is_used_when_no_attachment():
    message = parse_message("8", _invitation("Invite", make_ics("Retro"), inline=True))

    attachments = message.calendar_attachments()
    assert len(attachments) == 1
    assert parse_ics(attachments[0].data_as_string()).title == "Retro"


def test_body_text_is_not_an_attachment():
    message = parse_message("9", _invitation("Invite", make_ics()))
    assert [a.content_type for a in message.attachments] == [CALENDAR_MIME_TYPE]


def test_thread_key_prefers_references_root():
    raw = _invitation(
        "Изменение события",
        make_ics(),
        message_id="<m3@example.com>",
        references="<root@example.com> <m2@example.com>",
    )
    assert parse_message("3", raw).thread_key == "<root@example.com>"


def test_thread_key_falls_back_to_uid():
    raw = b"Subject: bare\r\n\r\nno ids here\r\n"
    message = parse_message("42", raw)
    assert message.thread_key == "uid:42"
    assert message.attachments == []


def test_unknown_charset_falls_back_to_utf8():
    attachment = MailAttachment("a.ics", CALENDAR_MIME_TYPE, "SUMMARY:Ок".encode(), "x-unknown")
    assert attachment.data_as_string() == "SUMMARY:Ок"


# ---------------------------------------------------------------------------
# ImapMailbox with a stub connection
# ---------------------------------------------------------------------------


def _mailbox(conn) -> ImapMailbox:
    mailbox = ImapMailbox("imap.example.com", "me@example.com", "secret")
    mailbox.conn = conn
    return mailbox


def test_search_groups_messages_into_threads():
    conn = FakeImapConnection(
        {
            "1": _invitation("Invite", make_ics("Standup"), message_id="<root@example.com>"),
            "2": _invitation(
                "Изменение события",
                make_ics("Standup"),
                message_id="<m2@example.com>",
                references="<root@example.com>",
            ),
            "3": _invitation("Invite", make_ics("Retro"), message_id="<other@example.com>"),
        }
    )

    threads = _mailbox(conn).search("(SINCE 17-Oct-2026 UNKEYWORD Processed)")

    assert [t.key for t in threads] == ["<root@example.com>", "<other@example.com>"]
    assert threads[0].uids == ["1", "2"]
    assert threads[1].uids == ["3"]


def test_search_with_no_results():
    assert _mailbox(FakeImapConnection({})).search("ALL") == []


def test_unfetchable_message_is_skipped():
    conn = FakeImapConnection({"1": _invitation("Invite", make_ics())}, missing=["2"])

    threads = _mailbox(conn).search("ALL")
    assert [t.uids for t in threads] == [["1"]]


def test_mark_processed_flags_every_message():
    conn = FakeImapConnection({})
    thread = MailThread("<root@example.com>")
    thread.messages.append(parse_message("1", _invitation("a", make_ics())))
    thread.messages.append(parse_message("5", _invitation("b", make_ics())))

    _mailbox(conn).mark_processed(thread, "Processed")

    assert conn.stored == [("1,5", "+FLAGS", "(Processed)")]


def test_mark_processed_failure_raises():
    conn = FakeImapConnection({}, store_status="NO")
    thread = MailThread("<root@example.com>")
    thread.messages.append(parse_message("1", _invitation("a", make_ics())))

    with pytest.raises(CalendarImportError):
        _mailbox(conn).mark_processed(thread, "Processed")


def test_operations_require_connection():
    mailbox = ImapMailbox("imap.example.com", "me@example.com", "secret")
    with pytest.raises(CalendarImportError):
        mailbox.search("ALL")
    with pytest.raises(CalendarImportError):
        mailbox.mark_processed(MailThread("k"), "Processed")
