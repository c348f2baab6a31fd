"""In-memory record of GitHub issues that already have a Jira mirror."""

from typing import FrozenSet, Set


class InMemoryLedger:
    """
    Set of processed GitHub issue ids.

    Entries are only ever added, and live for the lifetime of the process.
    Not thread-safe: callers mutate it from the serialized poll cycle.
    A persistent store can replace it by providing the same methods.
    """

    def __init__(self):
        self._processed: Set[int] = set()

    def has(self, issue_id: int) -> bool:
        return issue_id in self._processed

    def mark_processed(self, issue_id: int) -> None:
        self._processed.add(issue_id)

    def snapshot(self) -> FrozenSet[int]:
        return frozenset(self._processed)

    def __len__(self) -> int:
        return len(self._processed)

    def __contains__(self, issue_id: object) -> bool:
        return issue_id in self._processed
