"""
Reconcile parsed invitations against the calendar store.
"""

import logging

from ics_importer.deletion_memory import DeletionMemory
from ics_importer.models import CalendarImportError
from ics_importer.models import EventOptions
from ics_importer.models import ImportConfig
from ics_importer.models import ImportStats
from ics_importer.models import Intent
from ics_importer.models import ParsedEvent
from ics_importer.parser import parse_ics
from ics_importer.validator import is_valid_email


class EventReconciler:
    """Turns create/update/cancel messages into calendar store mutations.

    ``store`` is duck-typed: it must provide ``get_events(start, end)``
    returning events with ``title``, ``start``, ``end`` and ``delete()``, and
    ``create_event(title, start, end, options)``. The store is treated as the
    only source of truth; nothing is cached between calls.
    """

    def __init__(
        self,
        store,
        config: ImportConfig,
        stats: ImportStats | None = None,
        memory: DeletionMemory | None = None,
    ):
        self.store = store
        self.config = config
        self.stats = stats if stats is not None else ImportStats()
        self.memory = memory if memory is not None else DeletionMemory()
        self.logger = logging.getLogger(__name__)
        self._handlers = {
            Intent.CREATE: self.create,
            Intent.UPDATE: self.update,
            Intent.DELETE: self.delete,
        }

    def apply(self, intent: Intent, ics_content: str) -> None:
        """Run the entry point selected by ``intent``."""
        self._handlers[intent](ics_content)

    # ------------------------------------------------------------------ #
    # Entry points                                                          #
    # ------------------------------------------------------------------ #

    def create(self, ics_content: str) -> None:
        event = parse_ics(ics_content)

        if event.title in self.memory:
            self.logger.info(f"Event was previously cancelled and will not be added: {event.title}")
            self.stats.skipped += 1
            return

        if not event.has_time_window:
            self.logger.warning(f"Invalid start time, not adding: {event.title}")
            self.stats.skipped += 1
            return

        try:
            if self._is_duplicate(event):
                self.logger.info(f"Duplicate event detected: {event.title}")
                self.stats.skipped += 1
                return

            if self.config.dry_run:
                self.logger.info(f"[DRY RUN] Would CREATE event: {event.title}")
            else:
                self._create_in_store(event)
                self.logger.info(f"Event added: {event.title}")
            self.stats.added += 1
        except CalendarImportError as e:
            self.logger.error(f"Failed to create event {event.title}: {e}")
            self.stats.errors += 1

    def update(self, ics_content: str) -> None:
        event = parse_ics(ics_content)

        if event.title in self.memory:
            self.logger.info(
                f"Event was previously cancelled and will not be updated: {event.title}"
            )
            self.stats.skipped += 1
            return

        if not event.has_time_window:
            self.logger.warning(f"Invalid start time: {event.start}")
            self.stats.skipped += 1
            return

        try:
            existing = self._find_by_title(event, *event.window)
            if existing is None and self.config.update_lookaround:
                # A rescheduled event still sits in its old slot.
                existing = self._find_nearest_by_title(event, self.config.update_lookaround)

            if existing is None:
                self.logger.info(f"No matching event found to update: {event.title}")
                self.stats.skipped += 1
                return

            if self.config.dry_run:
                self.logger.info(f"[DRY RUN] Would UPDATE event: {event.title}")
                self.stats.updated += 1
                return

            self.logger.debug(f"Updating event: {event.title}")
            existing.delete()
            self.logger.debug(f"Old event deleted: {event.title}")
            self._create_in_store(event)
            self.logger.info(f"Event updated: {event.title}")
            self.stats.updated += 1
        except CalendarImportError as e:
            self.logger.error(f"Failed to update event {event.title}: {e}")
            self.stats.errors += 1

    def delete(self, ics_content: str) -> None:
        event = parse_ics(ics_content)

        # Remembered even when nothing matches: a later invitation for the
        # same title must not bring the event back.
        self.memory.record(event.title)

        if not event.has_time_window:
            self.logger.warning(f"Invalid start time, cannot look up: {event.title}")
            self.stats.skipped += 1
            return

        try:
            existing = self._find_by_title(event, *event.window)
            if existing is None:
                self.logger.info(f"No matching event found to delete: {event.title}")
                self.stats.skipped += 1
                return

            if self.config.dry_run:
                self.logger.info(f"[DRY RUN] Would DELETE event: {event.title}")
            else:
                existing.delete()
                self.logger.info(f"Event deleted: {event.title}")
            self.stats.deleted += 1
        except CalendarImportError as e:
            self.logger.error(f"Failed to delete event {event.title}: {e}")
            self.stats.errors += 1

    # ------------------------------------------------------------------ #
    # Helpers                                                               #
    # ------------------------------------------------------------------ #

    def _is_duplicate(self, event: ParsedEvent) -> bool:
        start, end = event.window
        for existing in self.store.get_events(start, end):
            if existing.title == event.title and existing.start == start and existing.end == end:
                return True
        return False

    def _find_by_title(self, event: ParsedEvent, start, end):
        """Return the first store event in [start, end] titled like ``event``."""
        matches = [e for e in self.store.get_events(start, end) if e.title == event.title]
        if not matches:
            return None
        if len(matches) > 1:
            self.logger.warning(
                f"{len(matches)} events titled {event.title!r} between {start} and {end}; "
                f"using the first"
            )
        return matches[0]

    def _find_nearest_by_title(self, event: ParsedEvent, lookaround):
        """Return the event titled like ``event`` whose start is closest to its new start.

        Searches ``lookaround`` on either side of the new window, which may
        hold neighbouring occurrences of a repeating invitation.
        """
        start, end = event.window
        candidates = self.store.get_events(start - lookaround, end + lookaround)
        matches = [e for e in candidates if e.title == event.title and e.start is not None]
        if not matches:
            return None
        nearest = min(matches, key=lambda e: abs(e.start - start))
        if len(matches) > 1:
            self.logger.warning(
                f"{len(matches)} events titled {event.title!r} within {lookaround} of {start}; "
                f"using the one starting {nearest.start}"
            )
        return nearest

    def _create_in_store(self, event: ParsedEvent):
        start, end = event.window
        guests = [a for a in event.attendees if is_valid_email(a)]
        options = EventOptions(
            description=f"{event.description}\n\n{self.config.provenance_note}",
            location=event.location,
            guests=",".join(guests),
            send_invites=False,
        )
        return self.store.create_event(event.title, start, end, options)
