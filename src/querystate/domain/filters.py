"""Filter schemas and the immutable filter bag.

A :class:`FilterSchema` names the fields one screen keeps in its URL.
A :class:`FilterBag` is a snapshot of those fields' current values,
rebuilt from the query string on every read.

The schemas at the bottom of this module are the filter sets used by the
dashboard screens (test catalogue, tutors, students).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from querystate.domain.codecs import (
    FieldDescriptor,
    choice_field,
    float_field,
    int_choice_field,
    page_field,
    text_field,
)

PAGE_SIZES: tuple[int, ...] = (6, 12, 24, 48)
DEFAULT_PAGE_SIZE = 12
SORT_ORDERS: tuple[str, ...] = ("asc", "desc")


@dataclass(frozen=True)
class FilterSchema:
    """Declared fields of one named filter bag.

    Attributes:
        name: Schema name (``"tests"``, ``"tutors"`` ...).
        fields: Descriptors in declaration order.
        page_key: Key of the page field, reset by every other filter change.
        limit_key: Key of the page-size field, exempt from the page reset.
    """

    name: str
    fields: tuple[FieldDescriptor[Any], ...]
    page_key: str = "page"
    limit_key: str = "limit"

    def __post_init__(self) -> None:
        keys = [f.key for f in self.fields]
        if len(keys) != len(set(keys)):
            msg = f"Duplicate field keys in schema {self.name!r}: {keys}"
            raise ValueError(msg)

    def field(self, key: str) -> FieldDescriptor[Any]:
        """Look up a descriptor by key. Raises KeyError for unknown keys."""
        for descriptor in self.fields:
            if descriptor.key == key:
                return descriptor
        msg = f"Unknown field {key!r} in filter schema {self.name!r}"
        raise KeyError(msg)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(f.key for f in self.fields)

    @property
    def page(self) -> FieldDescriptor[Any] | None:
        return self._maybe(self.page_key)

    def resets_page(self, key: str) -> bool:
        """Whether writing *key* must reset the page field."""
        return key not in (self.page_key, self.limit_key) and self.page is not None

    def defaults(self) -> FilterBag:
        """A bag holding every field's default."""
        return FilterBag(self, {f.key: f.default for f in self.fields})

    def from_params(self, params: Mapping[str, str]) -> FilterBag:
        """Decode a bag from raw query parameters (unknown keys ignored)."""
        return FilterBag(self, {f.key: f.decode(params.get(f.key)) for f in self.fields})

    def _maybe(self, key: str) -> FieldDescriptor[Any] | None:
        try:
            return self.field(key)
        except KeyError:
            return None


@dataclass(frozen=True)
class FilterBag(Mapping[str, Any]):
    """Read-only snapshot of a schema's field values, in declaration order."""

    schema: FilterSchema
    data: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        if key in self.data:
            return self.data[key]
        return self.schema.field(key).default

    def __iter__(self) -> Iterator[str]:
        return iter(self.schema.keys)

    def __len__(self) -> int:
        return len(self.schema.fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FilterBag):
            return self.schema.name == other.schema.name and dict(self) == dict(other)
        if isinstance(other, Mapping):
            return dict(self) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.schema.name, tuple(self.to_params().items())))

    def replace(self, **changes: Any) -> FilterBag:
        """Return a new bag with *changes* applied.

        Keys are validated and values normalized through their codecs, so the
        bag equals the one a URL round-trip would produce.
        """
        normalized = {key: self.schema.field(key).normalize(value) for key, value in changes.items()}
        return FilterBag(self.schema, {**dict(self), **normalized})

    def to_params(self) -> dict[str, str]:
        """Minimal serialized form: only non-default fields, declaration order."""
        params: dict[str, str] = {}
        for descriptor in self.schema.fields:
            encoded = descriptor.encode(self[descriptor.key])
            if encoded is not None:
                params[descriptor.key] = encoded
        return params

    def active_keys(self) -> list[str]:
        """Keys whose value differs from the default."""
        return list(self.to_params())


# ── Screen schemas ────────────────────────────────────────────────────


def _paging() -> tuple[FieldDescriptor[Any], ...]:
    return (
        page_field("page"),
        int_choice_field("limit", PAGE_SIZES, DEFAULT_PAGE_SIZE),
    )


def _sorting(default_sort: str) -> tuple[FieldDescriptor[Any], ...]:
    return (
        text_field("sortBy", default=default_sort),
        choice_field("sortOrder", SORT_ORDERS, default="desc"),
    )


TEST_FILTERS = FilterSchema(
    name="tests",
    fields=(
        text_field("search"),
        text_field("type", default="all"),
        text_field("examType", default="all"),
        text_field("subject", default="all"),
        text_field("difficulty", default="all"),
        text_field("createdBy", default="all"),
        *_sorting("createdAt"),
        *_paging(),
    ),
)

TUTOR_FILTERS = FilterSchema(
    name="tutors",
    fields=(
        text_field("search"),
        text_field("status", default="all"),
        text_field("specialization", default="all"),
        text_field("experience", default="all"),
        text_field("rating", default="all"),
        text_field("verified", default="all"),
        *_sorting("joinDate"),
        *_paging(),
    ),
)

STUDENT_FILTERS = FilterSchema(
    name="students",
    fields=(
        text_field("search"),
        text_field("status", default="all"),
        text_field("examGoal", default="all"),
        text_field("hasAttempts", default="all"),
        *_sorting("createdAt"),
        float_field("minScore"),
        float_field("maxScore"),
        *_paging(),
    ),
)

SCHEMAS: dict[str, FilterSchema] = {
    schema.name: schema for schema in (TEST_FILTERS, TUTOR_FILTERS, STUDENT_FILTERS)
}


def get_schema(name: str) -> FilterSchema:
    """Look up a registered screen schema. Raises KeyError for unknown names."""
    try:
        return SCHEMAS[name]
    except KeyError:
        msg = f"Unknown filter schema {name!r}; expected one of {sorted(SCHEMAS)}"
        raise KeyError(msg) from None
