"""Built-in notifier: turns settled mutations and failed queries into notices.

The host UI drains :attr:`NotifierPlugin.notices` to show toasts; the CLI
simply logs them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pluggy

hookimpl = pluggy.HookimplMarker("querystate")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """A user-facing notification."""

    title: str
    description: str
    variant: str = "default"


class NotifierPlugin:
    """Collects notices for the host's toast collaborator."""

    def __init__(self, *, max_notices: int = 50) -> None:
        self.notices: list[Notice] = []
        self._max_notices = max_notices

    @hookimpl
    def mutation_settled(self, name: str, ok: bool, error: str | None) -> None:
        if ok:
            self._push(Notice(title=name, description=f"{name} completed successfully."))
        else:
            self._push(
                Notice(
                    title="Error",
                    description=error or f"{name} failed. Please try again.",
                    variant="destructive",
                )
            )

    @hookimpl
    def query_settled(self, key: str, status: str, error: str | None) -> None:
        if status == "error":
            logger.warning("Query %s failed: %s", key, error)

    def drain(self) -> list[Notice]:
        """Return and forget every pending notice."""
        notices, self.notices = self.notices, []
        return notices

    def _push(self, notice: Notice) -> None:
        self.notices.append(notice)
        del self.notices[: -self._max_notices]
