"""
CalendarImporter: one batch run over the mailbox.
"""

import logging

from ics_importer.classifier import SubjectClassifier
from ics_importer.deletion_memory import DeletionMemory
from ics_importer.mailbox import build_search_criteria
from ics_importer.models import CalendarImportError
from ics_importer.models import ImportConfig
from ics_importer.models import ImportStats
from ics_importer.reconciler import EventReconciler


class CalendarImporter:
    """Main import engine.

    ``mailbox`` needs ``search(criteria)`` returning threads and
    ``mark_processed(thread, flag)``; ``store`` is anything EventReconciler
    accepts. Threads are handled one at a time, each to completion.
    """

    def __init__(
        self,
        config: ImportConfig,
        mailbox,
        store,
        classifier: SubjectClassifier | None = None,
        memory: DeletionMemory | None = None,
    ):
        self.config = config
        self.mailbox = mailbox
        self.logger = logging.getLogger(__name__)
        self.stats = ImportStats()
        self.classifier = classifier or SubjectClassifier.from_config(config)
        self.memory = memory if memory is not None else DeletionMemory()
        self.reconciler = EventReconciler(store, config, self.stats, self.memory)

    def run(self) -> ImportStats:
        """Execute the import process."""
        criteria = build_search_criteria(self.config.since_days, self.config.processed_flag)
        self.logger.info(f"Searching mailbox: {criteria}")
        threads = self.mailbox.search(criteria)
        self.logger.info(f"Processing {len(threads)} thread(s)...")

        for thread in threads:
            self.process_thread(thread)

        if self.memory:
            self.logger.debug(f"Cancelled this run: {', '.join(self.memory)}")
        return self.stats

    def process_thread(self, thread):
        for message in thread.messages:
            attachments = message.calendar_attachments()
            if not attachments:
                continue
            intent = self.classifier.classify(message.subject)
            self.logger.debug(f"{intent.value.upper()}: {message.subject}")
            for attachment in attachments:
                self.reconciler.apply(intent, attachment.data_as_string())

        if self.config.dry_run:
            self.logger.info(f"[DRY RUN] Would mark thread {thread.key} as processed")
            return
        try:
            self.mailbox.mark_processed(thread, self.config.processed_flag)
        except CalendarImportError as e:
            self.logger.error(f"Failed to mark thread {thread.key} as processed: {e}")
            self.stats.errors += 1
