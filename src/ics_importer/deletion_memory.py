"""
In-run record of cancelled event titles.
"""

from collections.abc import Iterator


class DeletionMemory:
    """Titles cancelled during the current run.

    A title recorded here vetoes any later create or update carrying the same
    title for the rest of the run. Entries are never evicted and nothing is
    persisted, so a stale invitation processed in a *later* run can still
    recreate the event.
    """

    def __init__(self, titles=()):
        self._titles: set[str] = set(titles)

    def contains(self, title: str) -> bool:
        return title in self._titles

    def record(self, title: str) -> None:
        self._titles.add(title)

    def __contains__(self, title: object) -> bool:
        return title in self._titles

    def __len__(self) -> int:
        return len(self._titles)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._titles))
