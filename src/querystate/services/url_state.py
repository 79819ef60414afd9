"""UrlStateStore — typed read/write of single fields against the query string.

Reads decode the live query string on every call; nothing is cached
outside the URL.  Writes elide defaults (minimality) and go through the
provider's history-replace, never push, so rapid filter edits do not
pollute back/forward navigation.

Writes issued inside :meth:`UrlStateStore.batch` are staged and applied
as one replace when the outermost batch exits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from querystate.infrastructure.history import format_query

if TYPE_CHECKING:
    from querystate.domain.codecs import FieldDescriptor
    from querystate.infrastructure.history import UrlProvider
    from querystate.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

ValueOrUpdater = Any  # ``T | Callable[[T], T]``


class UrlStateStore:
    """Binds field descriptors to a :class:`UrlProvider`."""

    def __init__(self, provider: UrlProvider, *, plugin_manager: PluginManager | None = None) -> None:
        self._provider = provider
        self._pm = plugin_manager
        self._staged: dict[str, str] | None = None
        self._depth = 0

    @property
    def provider(self) -> UrlProvider:
        return self._provider

    def params(self) -> Mapping[str, str]:
        """Current params, including writes staged by an open batch."""
        if self._staged is not None:
            return dict(self._staged)
        return dict(self._provider.read_all_params())

    def get(self, field: FieldDescriptor[T]) -> T:
        """Current typed value of *field* (default when absent or invalid)."""
        return field.decode(self.params().get(field.key))

    def set(self, field: FieldDescriptor[T], value: T | Callable[[T], T]) -> None:
        """Write *field*; a callable is applied to the current value first."""
        with self.batch() as staged:
            self._stage(staged, field, value)

    def set_many(self, changes: Mapping[FieldDescriptor[Any], ValueOrUpdater]) -> None:
        """Write several fields in one replace."""
        with self.batch() as staged:
            for field, value in changes.items():
                self._stage(staged, field, value)

    @contextmanager
    def batch(self) -> Iterator[dict[str, str]]:
        """Stage every write inside the block and commit them as one replace.

        Nested batches fold into the outermost one.  If the block raises,
        staged writes are discarded and the URL is left untouched.
        """
        if self._staged is None:
            self._staged = dict(self._provider.read_all_params())
        self._depth += 1
        try:
            yield self._staged
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._staged = None
            raise
        self._depth -= 1
        if self._depth == 0:
            staged, self._staged = self._staged, None
            self._commit(staged)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _stage(self, staged: dict[str, str], field: FieldDescriptor[Any], value: Any) -> None:
        if callable(value):
            value = value(field.decode(staged.get(field.key)))
        encoded = field.encode(value)
        if encoded is None:
            staged.pop(field.key, None)
        else:
            staged[field.key] = encoded

    def _commit(self, staged: dict[str, str]) -> None:
        current = dict(self._provider.read_all_params())
        if staged == current:
            return
        logger.debug("url.replace %s", staged)
        self._provider.replace_params(staged)
        if self._pm is not None:
            self._pm.dispatch("url_replaced", query=format_query(staged))
