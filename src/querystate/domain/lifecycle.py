"""Cache entry lifecycle and the consumer-facing query status.

Entry lifecycle (computed by the request cache, never set by callers):

- ``absent -> fetching``: first request for a key.
- ``fetching -> fresh``: success, ``fetched_at`` recorded.
- ``fetching -> error``: retries exhausted; the last good value is kept.
- ``fresh -> stale``: ``now - fetched_at > stale_time`` (or invalidated).
- ``stale -> fetching``: background revalidation on the next request.
- ``error -> fetching``: the next request tries again.
- ``any -> absent``: no subscribers for longer than ``gc_time``, or removed.
- ``any -> fresh``: a known value stored directly with ``set_data``.

A move to the state an entry is already in is not a transition.
"""

from __future__ import annotations

from enum import StrEnum


class EntryStatus(StrEnum):
    """Internal state of a cache entry."""

    ABSENT = "absent"
    FETCHING = "fetching"
    FRESH = "fresh"
    STALE = "stale"
    ERROR = "error"


class QueryStatus(StrEnum):
    """What a consumer of ``request()`` observes."""

    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class InvalidTransitionError(RuntimeError):
    """The request cache tried to move an entry along an undeclared edge."""

    def __init__(self, current: EntryStatus, target: EntryStatus) -> None:
        super().__init__(f"Invalid cache entry transition: {current} -> {target}")
        self.current = current
        self.target = target


ENTRY_TRANSITIONS: dict[EntryStatus, frozenset[EntryStatus]] = {
    EntryStatus.ABSENT: frozenset({EntryStatus.FETCHING, EntryStatus.FRESH}),
    EntryStatus.FETCHING: frozenset({EntryStatus.FRESH, EntryStatus.ERROR, EntryStatus.ABSENT}),
    EntryStatus.FRESH: frozenset({EntryStatus.STALE, EntryStatus.FETCHING, EntryStatus.ABSENT}),
    EntryStatus.STALE: frozenset({EntryStatus.FETCHING, EntryStatus.FRESH, EntryStatus.ABSENT}),
    EntryStatus.ERROR: frozenset({EntryStatus.FETCHING, EntryStatus.FRESH, EntryStatus.ABSENT}),
}


def is_valid_transition(current: EntryStatus, target: EntryStatus) -> bool:
    """Whether an entry in *current* may move to *target*."""
    return current == target or target in ENTRY_TRANSITIONS.get(current, frozenset())


def check_transition(current: EntryStatus, target: EntryStatus) -> None:
    """Raise :class:`InvalidTransitionError` unless *current* -> *target* is declared."""
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(current, target)
