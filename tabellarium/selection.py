"""Message selection and batch limiting."""

from collections.abc import Iterable
from dataclasses import dataclass

from imapclient import DELETED, SEEN


@dataclass(frozen=True)
class SelectionFilter:
    """Which messages of the folder an operation works on.

    The search criteria go to the server. admits() re-checks a single
    message's current flags right before it is processed, because flags can
    change between the search and the per-message access (another client, an
    earlier step of the same batch). The re-check also drops messages
    already flagged deleted, which the search does not exclude.
    """
    include_seen: bool = False

    @property
    def criteria(self) -> list[str]:
        if self.include_seen:
            return ["OR", "SEEN", "UNSEEN"]
        return ["UNSEEN"]

    def matches(self, flags: Iterable[bytes]) -> bool:
        """Evaluate the search predicate against a flag set."""
        return self.include_seen or SEEN not in set(flags)

    def admits(self, flags: Iterable[bytes]) -> bool:
        flags = set(flags)
        if DELETED in flags:
            return False
        return self.matches(flags)


def build_filter(include_seen: bool) -> SelectionFilter:
    return SelectionFilter(include_seen=include_seen)


def batch_count(total: int, batch_size: int) -> int:
    """Number of candidates to process in one invocation.

    A batch size of 0 means no limit. Negative sizes are rejected by
    ExecutorConfig and never reach here.
    """
    if batch_size == 0:
        return total
    return min(total, batch_size)
