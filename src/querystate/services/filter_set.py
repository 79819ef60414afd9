"""FilterSetController — one named filter bag kept in the URL.

INVARIANT: Changing any field other than page/limit resets the page to
its default in the same URL replace.
INVARIANT: ``clear_all()`` is a single URL mutation, so listeners see one
change event no matter how many fields were active.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from querystate.services.url_state import UrlStateStore

if TYPE_CHECKING:
    from querystate.domain.filters import FilterBag, FilterSchema
    from querystate.infrastructure.history import UrlProvider

logger = logging.getLogger(__name__)


class FilterSetController:
    """Typed access to the fields of a :class:`FilterSchema` via the URL.

    Usage::

        filters = FilterSetController(TUTOR_FILTERS, history)
        filters.write_field("search", "math")   # also resets page
        bag = filters.read_filter_bag()
    """

    def __init__(self, schema: FilterSchema, provider: UrlProvider | UrlStateStore) -> None:
        self._schema = schema
        self._store = provider if isinstance(provider, UrlStateStore) else UrlStateStore(provider)

    @property
    def schema(self) -> FilterSchema:
        return self._schema

    @property
    def store(self) -> UrlStateStore:
        return self._store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_field(self, key: str) -> Any:
        """Current value of field *key*. Raises KeyError for unknown keys."""
        return self._store.get(self._schema.field(key))

    def read_filter_bag(self) -> FilterBag:
        """Snapshot of every field, decoded from the live query string."""
        return self._schema.from_params(self._store.params())

    def active_count(self) -> int:
        """Number of fields currently holding a non-default value."""
        return len(self.read_filter_bag().active_keys())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_field(self, key: str, value: Any | Callable[[Any], Any]) -> None:
        """Write one field; non-page fields also reset the page."""
        self.update(**{key: value})

    def update(self, **changes: Any) -> None:
        """Write several fields as one URL replace.

        If any changed field is subject to the pagination-reset rule the
        page is reset too, unless the page itself is part of *changes*.
        """
        descriptors = {key: self._schema.field(key) for key in changes}
        with self._store.batch():
            for key, value in changes.items():
                self._store.set(descriptors[key], value)
            reset = any(self._schema.resets_page(key) for key in changes)
            if reset and self._schema.page_key not in changes:
                self.reset_page()

    def reset_page(self) -> None:
        """Set the page field to its default."""
        page = self._schema.page
        if page is not None:
            self._store.set(page, page.default)

    def clear_all(self) -> None:
        """Reset every field to its default in a single URL replace.

        Parameters that do not belong to this schema are preserved.
        """
        with self._store.batch():
            for descriptor in self._schema.fields:
                self._store.set(descriptor, descriptor.default)
        logger.debug("filters.clear_all schema=%s", self._schema.name)
