"""
In-memory fakes for the mailbox side: a duck-typed ImapMailbox replacement
for importer tests, and a minimal imaplib connection stub for ImapMailbox
itself.
"""

from ics_importer.mailbox import MailAttachment
from ics_importer.mailbox import MailMessage
from ics_importer.mailbox import MailThread
from ics_importer.models import CALENDAR_MIME_TYPE


def make_message(uid: str, subject: str, *ics_texts: str, thread_key: str | None = None):
    attachments = [
        MailAttachment("invite.ics", CALENDAR_MIME_TYPE, text.encode("utf-8")) for text in ics_texts
    ]
    return MailMessage(uid=uid, subject=subject, thread_key=thread_key or f"<{uid}@test>",
                       attachments=attachments)


class FakeMailbox:
    """Stands in for ImapMailbox: returns canned threads, records flags."""

    def __init__(self, threads: list[MailThread]):
        self.threads = threads
        self.criteria: list[str] = []
        self.marked: list[tuple[str, str]] = []

    def search(self, criteria: str) -> list[MailThread]:
        self.criteria.append(criteria)
        return list(self.threads)

    def mark_processed(self, thread: MailThread, flag: str):
        self.marked.append((thread.key, flag))


class FakeImapConnection:
    """Answers the UID SEARCH / FETCH / STORE calls ImapMailbox makes."""

    def __init__(self, messages: dict[str, bytes], store_status: str = "OK", missing=()):
        self.messages = messages
        self.missing = list(missing)  # UIDs that SEARCH reports but FETCH cannot return
        self.store_status = store_status
        self.stored: list[tuple] = []
        self.fetched: list[str] = []

    def uid(self, command, *args):
        if command == "SEARCH":
            return "OK", [" ".join([*self.messages, *self.missing]).encode()]
        if command == "FETCH":
            uid = args[0]
            self.fetched.append(uid)
            if uid not in self.messages:
                return "OK", [None]
            raw = self.messages[uid]
            return "OK", [(f"1 (UID {uid} BODY[] {{{len(raw)}}}".encode(), raw), b")"]
        if command == "STORE":
            self.stored.append(args)
            return self.store_status, [b""]
        raise AssertionError(f"unexpected IMAP command {command}")
