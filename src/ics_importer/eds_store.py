"""
Evolution Data Server calendar store.
"""

import logging
import uuid
from datetime import datetime
from datetime import timezone
from typing import Optional, Tuple

import gi
gi.require_version('EDataServer', '1.2')
gi.require_version('ECal', '2.0')
gi.require_version('ICalGLib', '3.0')
from gi.repository import EDataServer, ECal, ICalGLib, GLib

from .models import CalendarImportError, EventOptions

_logger = logging.getLogger(__name__)


def get_calendar_display_info(calendar_uid: str) -> Tuple[str, str, str]:
    """
    Get human-readable information about a calendar.

    Returns:
        Tuple of (display_name, account_name, uid)
    """
    try:
        registry = EDataServer.SourceRegistry.new_sync(None)
        source = registry.ref_source(calendar_uid)

        if not source:
            return ("Unknown Calendar", "", calendar_uid)

        display_name = source.get_display_name() or "Unnamed Calendar"
        return (display_name, _parent_display_name(registry, source), calendar_uid)
    except Exception as e:
        return (f"Error: {e}", "", calendar_uid)


def _parent_display_name(registry, source) -> str:
    """Return the display name of the source's parent account, or empty string."""
    parent_uid = source.get_parent()
    if not parent_uid:
        return ""
    parent_source = registry.ref_source(parent_uid)
    if not parent_source:
        return ""
    return parent_source.get_display_name() or ""


def list_calendar_entries() -> list:
    """
    Return every EDS calendar as (name, account, mode, mode_style, uid).
    """
    registry = EDataServer.SourceRegistry.new_sync(None)
    sources = registry.list_sources(EDataServer.SOURCE_EXTENSION_CALENDAR)
    entries = []
    for source in sources:
        name = source.get_display_name() or "(unnamed)"
        uid = source.get_uid() or ""
        account = _parent_display_name(registry, source)
        try:
            client = ECal.Client.connect_sync(source, ECal.ClientSourceType.EVENTS, 5, None)
            mode = "Read-write" if not client.is_readonly() else "Read-only"
            mode_style = "green" if not client.is_readonly() else "yellow"
        except GLib.Error:
            mode = "Unknown"
            mode_style = "red"
        entries.append((name, account, mode, mode_style, uid))
    return entries


def _to_datetime(t: Optional[ICalGLib.Time]) -> Optional[datetime]:
    """ICalGLib time -> naive local datetime (UTC values are converted)."""
    if t is None or t.is_null_time():
        return None
    if t.is_date():
        return datetime(t.get_year(), t.get_month(), t.get_day())
    value = datetime(t.get_year(), t.get_month(), t.get_day(), t.get_hour(), t.get_minute())
    if t.is_utc():
        return value.replace(tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    return value


def _to_ical_time(value: datetime) -> ICalGLib.Time:
    """Naive local datetime -> floating ICalGLib time."""
    return ICalGLib.Time.new_from_string(value.strftime("%Y%m%dT%H%M%S"))


def _utc_stamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _as_vevent(obj) -> Optional[ICalGLib.Component]:
    """Return the VEVENT held by a listed object, unwrapping a VCALENDAR."""
    comp = ICalGLib.Component.new_from_string(obj) if isinstance(obj, str) else obj
    if comp is None:
        return None
    if comp.isa() == ICalGLib.ComponentKind.VCALENDAR_COMPONENT:
        return comp.get_first_component(ICalGLib.ComponentKind.VEVENT_COMPONENT)
    if comp.isa() == ICalGLib.ComponentKind.VEVENT_COMPONENT:
        return comp
    return None


class EDSEvent:
    """One VEVENT held by an EDSCalendarStore."""

    def __init__(self, store: "EDSCalendarStore", component: ICalGLib.Component):
        self.store = store
        self.component = component

    @property
    def uid(self) -> str:
        return self.component.get_uid() or ""

    @property
    def title(self) -> str:
        return self.component.get_summary() or ""

    @property
    def start(self) -> Optional[datetime]:
        return _to_datetime(self.component.get_dtstart())

    @property
    def end(self) -> Optional[datetime]:
        return _to_datetime(self.component.get_dtend())

    def delete(self):
        self.store.remove_event(self.uid)

    def __repr__(self):
        return f"EDSEvent(uid={self.uid!r}, title={self.title!r}, start={self.start})"


class EDSCalendarStore:
    """Calendar store backed by one Evolution Data Server calendar."""

    def __init__(self, calendar_uid: str, registry: Optional[EDataServer.SourceRegistry] = None):
        self.registry = registry
        self.calendar_uid = calendar_uid
        self.client: Optional[ECal.Client] = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Drop the client reference; EDS closes the backend connection with it."""
        self.client = None

    def connect(self, timeout: int = 10):
        """Connect to the configured calendar in EDS."""
        try:
            if self.registry is None:
                self.registry = EDataServer.SourceRegistry.new_sync(None)
        except GLib.Error as e:
            raise CalendarImportError(f"EDS registry unreachable: {e.message}")

        source = self.registry.ref_source(self.calendar_uid)
        if not source:
            raise CalendarImportError(
                f"Calendar with UID '{self.calendar_uid}' not found in EDS"
            )

        try:
            self.client = ECal.Client.connect_sync(
                source,
                ECal.ClientSourceType.EVENTS,
                timeout,
                None
            )
        except GLib.Error as e:
            raise CalendarImportError(
                f"Failed to connect to calendar {self.calendar_uid}: {e.message}"
            )

    def get_events(self, start: datetime, end: datetime) -> list:
        """
        Return events overlapping [start, end], ordered by start time then UID
        so that "first match" is reproducible between runs.
        """
        if not self.client:
            raise CalendarImportError("Client not connected")

        sexp = (
            f'(occur-in-time-range? (make-time "{_utc_stamp(start)}") '
            f'(make-time "{_utc_stamp(end)}"))'
        )
        try:
            _, objects = self.client.get_object_list_sync(sexp, None)
        except GLib.Error as e:
            raise CalendarImportError(f"Failed to fetch events: {e.message}")

        events = []
        for obj in objects or []:
            comp = _as_vevent(obj)
            if comp is None:
                _logger.debug("Skipping calendar object without a VEVENT")
                continue
            events.append(EDSEvent(self, comp))
        events.sort(key=lambda e: (e.start or datetime.min, e.uid))
        return events

    def create_event(
        self, title: str, start: datetime, end: datetime, options: EventOptions
    ) -> EDSEvent:
        """Create a new event in the calendar.

        EDS never sends iTIP invitations on a plain create, so attendees are
        recorded without being notified.
        """
        if not self.client:
            raise CalendarImportError("Client not connected")
        if options.send_invites:
            _logger.warning("Sending invitations is not supported; guests will not be notified")

        comp = ICalGLib.Component.new_vevent()
        comp.set_uid(str(uuid.uuid4()))
        comp.set_summary(title)
        comp.set_dtstart(_to_ical_time(start))
        comp.set_dtend(_to_ical_time(end))
        if options.description:
            comp.set_description(options.description)
        if options.location:
            comp.set_location(options.location)
        for guest in filter(None, options.guests.split(",")):
            comp.add_property(ICalGLib.Property.new_attendee(f"mailto:{guest}"))

        try:
            success, out_uid = self.client.create_object_sync(
                comp,
                ECal.OperationFlags.NONE,
                None
            )
        except GLib.Error as e:
            raise CalendarImportError(f"Failed to create event: {e.message}")
        if not success:
            raise CalendarImportError("Failed to create event")

        # Use the UID assigned by the server when it rewrites ours
        if out_uid and out_uid != comp.get_uid():
            _logger.debug(f"Server assigned UID: {out_uid}")
            comp.set_uid(out_uid)
        return EDSEvent(self, comp)

    def remove_event(self, uid: str):
        """Remove an event from the calendar."""
        if not self.client:
            raise CalendarImportError("Client not connected")

        try:
            success = self.client.remove_object_sync(
                uid,
                None,  # rid (recurrence-id)
                ECal.ObjModType.THIS,
                ECal.OperationFlags.NONE,
                None  # cancellable
            )
        except GLib.Error as e:
            raise CalendarImportError(f"Failed to remove event {uid}: {e.message}")
        if not success:
            raise CalendarImportError(f"Failed to remove event {uid}")
