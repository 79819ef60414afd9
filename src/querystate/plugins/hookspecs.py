"""Pluggy hook specifications for querystate events.

Hooks fire synchronously on the event loop after the state they describe
has been committed.  Notification delivery (toasts, audit logs) attaches
here instead of living inside the cache.
"""

from __future__ import annotations

import pluggy

hookspec = pluggy.HookspecMarker("querystate")


class QuerystateHookSpec:
    """Hook specifications for the querystate plugin system."""

    @hookspec
    def url_replaced(self, query: str) -> None:
        """Called after the URL-state store replaced the query string."""

    @hookspec
    def query_settled(self, key: str, status: str, error: str | None) -> None:
        """Called after a cache entry settled (success or error)."""

    @hookspec
    def mutation_settled(self, name: str, ok: bool, error: str | None) -> None:
        """Called after a mutation finished, once its retries are exhausted."""
