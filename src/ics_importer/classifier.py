"""
Subject-line classification of invitation messages.
"""

from collections.abc import Iterable

from ics_importer.models import DEFAULT_CANCEL_KEYWORDS
from ics_importer.models import DEFAULT_UPDATE_PREFIXES
from ics_importer.models import ImportConfig
from ics_importer.models import Intent


class SubjectClassifier:
    """Decide create/update/delete from a message subject.

    A subject containing *every* cancel keyword is a cancellation; one that
    starts with any update prefix is a change; anything else is a new
    invitation. Matching is case-sensitive.
    """

    def __init__(
        self,
        cancel_keywords: Iterable[str] = DEFAULT_CANCEL_KEYWORDS,
        update_prefixes: Iterable[str] = DEFAULT_UPDATE_PREFIXES,
    ):
        self.cancel_keywords = tuple(k for k in cancel_keywords if k)
        self.update_prefixes = tuple(p for p in update_prefixes if p)

    @classmethod
    def from_config(cls, config: ImportConfig) -> "SubjectClassifier":
        return cls(config.cancel_keywords, config.update_prefixes)

    def classify(self, subject: str) -> Intent:
        if self.cancel_keywords and all(k in subject for k in self.cancel_keywords):
            return Intent.DELETE
        if self.update_prefixes and subject.startswith(self.update_prefixes):
            return Intent.UPDATE
        return Intent.CREATE
