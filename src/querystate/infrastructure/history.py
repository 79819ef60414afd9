"""Browser history / URL provider.

:class:`UrlProvider` is the seam the URL-state store writes through.
:class:`MemoryHistory` is an in-process implementation with a history
stack, ``replace``/``push`` semantics and change listeners, used by the
CLI and the test suite wherever a real browser is not present.

INVARIANT: ``replace_params`` is atomic — listeners observe exactly one
change per call, never an intermediate URL.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qsl, urlencode, urlsplit

logger = logging.getLogger(__name__)

Listener = Callable[["Location"], None]


@runtime_checkable
class UrlProvider(Protocol):
    """What the URL-state layer needs from the host's router."""

    def read_all_params(self) -> Mapping[str, str]:
        """Current query parameters (first value per key)."""
        ...

    def replace_params(self, params: Mapping[str, str]) -> None:
        """Replace the whole query string in one history-replace step."""
        ...


def parse_query(query: str) -> dict[str, str]:
    """Parse a query string, keeping the first value of repeated keys.

    Examples:
        >>> parse_query("?page=2&search=a&page=3")
        {'page': '2', 'search': 'a'}
    """
    params: dict[str, str] = {}
    for name, value in parse_qsl(query.lstrip("?"), keep_blank_values=True):
        params.setdefault(name, value)
    return params


def format_query(params: Mapping[str, str]) -> str:
    """Render params as ``?a=1&b=2`` (empty string when there are none)."""
    if not params:
        return ""
    return "?" + urlencode(list(params.items()))


@dataclass(frozen=True)
class Location:
    """One history entry: a path plus its query parameters."""

    path: str = "/"
    params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_url(cls, url: str) -> Location:
        parts = urlsplit(url)
        return cls(path=parts.path or "/", params=parse_query(parts.query))

    @property
    def query(self) -> str:
        return format_query(self.params)

    def __str__(self) -> str:
        return f"{self.path}{self.query}"


class MemoryHistory:
    """In-memory history stack implementing :class:`UrlProvider`.

    Usage::

        history = MemoryHistory("/tests?page=2")
        history.subscribe(lambda loc: print(loc))
        history.replace_params({"page": "3"})
    """

    def __init__(self, url: str = "/") -> None:
        self._entries: list[Location] = [Location.from_url(url)]
        self._listeners: list[Listener] = []
        self.replace_count = 0

    # ------------------------------------------------------------------
    # UrlProvider
    # ------------------------------------------------------------------

    def read_all_params(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self.location.params))

    def replace_params(self, params: Mapping[str, str]) -> None:
        current = self.location
        self._entries[-1] = Location(path=current.path, params=dict(params))
        self.replace_count += 1
        logger.debug("history.replace %s", self._entries[-1])
        self._notify()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def location(self) -> Location:
        return self._entries[-1]

    @property
    def length(self) -> int:
        """Number of entries on the back/forward stack."""
        return len(self._entries)

    def push(self, url: str) -> None:
        """Navigate to *url*, adding a history entry."""
        self._entries.append(Location.from_url(url))
        self._notify()

    def back(self) -> None:
        """Pop the current entry (no-op on the first entry)."""
        if len(self._entries) > 1:
            self._entries.pop()
            self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        location = self.location
        for listener in list(self._listeners):
            listener(location)
