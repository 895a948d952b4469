"""In-flight operation tracking, owned by a session rather than shared globally."""

from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class AlreadyInFlightError(RuntimeError):
    """The identifier is already being processed."""


class InFlightIds:
    """
    A small set of identifiers that are currently being processed.

    Usage:
        with in_flight.track("import"):
            await coordinator.import_draft(draft)
    """

    def __init__(self):
        self._ids: set[Hashable] = set()

    def add(self, item: Hashable) -> None:
        self._ids.add(item)

    def discard(self, item: Hashable) -> None:
        self._ids.discard(item)

    def __contains__(self, item: object) -> bool:
        return item in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._ids))

    def __repr__(self) -> str:
        return f"InFlightIds({sorted(map(str, self._ids))})"

    @contextmanager
    def track(self, item: Hashable) -> Iterator[None]:
        """
        Mark ``item`` in flight for the duration of the block.

        Raises:
            AlreadyInFlightError: If ``item`` is already in flight.
        """
        if item in self._ids:
            raise AlreadyInFlightError(f"{item!r} is already in progress")
        self._ids.add(item)
        try:
            yield
        finally:
            self._ids.discard(item)
