"""
EDSCalendarStore tests that need the GObject introspection data for
libical-glib and EDS, but no running evolution-data-server.  A stub client
replaces ECal.Client.
"""

from datetime import datetime

import pytest

pytest.importorskip("gi")

try:
    from ics_importer.eds_store import EDSCalendarStore
except (ImportError, ValueError) as e:
    pytest.skip(f"EDS introspection data unavailable: {e}", allow_module_level=True)


def _vevent(uid: str, summary: str, start: str, end: str) -> str:
    return (
        "BEGIN:VEVENT\r\n"
        f"UID:{uid}\r\n"
        f"SUMMARY:{summary}\r\n"
        f"DTSTART:{start}\r\n"
        f"DTEND:{end}\r\n"
        "END:VEVENT\r\n"
    )


def _vcalendar(*bodies: str) -> str:
    return "BEGIN:VCALENDAR\r\nVERSION:2.0\r\n" + "".join(bodies) + "END:VCALENDAR\r\n"


class _StubClient:
    def __init__(self, objects):
        self.objects = objects
        self.queries = []

    def get_object_list_sync(self, sexp, cancellable):
        self.queries.append(sexp)
        return True, list(self.objects)


def _store(objects) -> EDSCalendarStore:
    store = EDSCalendarStore("cal-123")
    store.client = _StubClient(objects)
    return store


WINDOW = (datetime(2024, 1, 15, 0, 0), datetime(2024, 1, 16, 0, 0))


def test_get_events_reads_plain_vevents():
    store = _store([_vevent("a", "Standup", "20240115T090000", "20240115T093000")])

    events = store.get_events(*WINDOW)

    assert [(e.uid, e.title, e.start, e.end) for e in events] == [
        ("a", "Standup", datetime(2024, 1, 15, 9, 0), datetime(2024, 1, 15, 9, 30))
    ]


def test_get_events_unwraps_vcalendar():
    wrapped = _vcalendar(_vevent("a", "Standup", "20240115T090000", "20240115T093000"))

    events = _store([wrapped]).get_events(*WINDOW)

    assert len(events) == 1
    assert events[0].title == "Standup"
    assert events[0].start == datetime(2024, 1, 15, 9, 0)


def test_get_events_skips_vcalendar_without_vevent():
    empty = _vcalendar()
    plain = _vevent("b", "Retro", "20240115T100000", "20240115T110000")

    events = _store([empty, plain]).get_events(*WINDOW)

    assert [e.title for e in events] == ["Retro"]


def test_get_events_orders_by_start_then_uid():
    store = _store(
        [
            _vevent("z", "Late", "20240115T150000", "20240115T160000"),
            _vevent("b", "Standup", "20240115T090000", "20240115T093000"),
            _vcalendar(_vevent("a", "Standup", "20240115T090000", "20240115T093000")),
        ]
    )

    assert [e.uid for e in store.get_events(*WINDOW)] == ["a", "b", "z"]


def test_context_manager_connects_and_releases_client(monkeypatch):
    store = EDSCalendarStore("cal-123")
    client = _StubClient([])
    monkeypatch.setattr(store, "connect", lambda: setattr(store, "client", client))

    with store as entered:
        assert entered is store
        assert store.client is client

    assert store.client is None
