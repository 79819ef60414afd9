"""Field descriptors — the typed contract between a value and its URL form.

Each descriptor declares a query-string key, a default, and a
serialize/deserialize pair.  Deserialization is lenient: the URL is
user-editable, so malformed or out-of-domain input falls back to the
default (or, when asked, the nearest allowed member) instead of raising.

INVARIANT: ``deserialize(serialize(v)) == v`` for every value in the
field's valid domain.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

# Values that are never written to the URL, whatever the field's default.
_ELIDED: tuple[Any, ...] = ("", None)


@dataclass(frozen=True)
class FieldDescriptor(Generic[T]):
    """A named, typed, serializable piece of URL state with a default."""

    key: str
    default: T
    serialize: Callable[[T], str]
    deserialize: Callable[[str], T]

    def is_default(self, value: Any) -> bool:
        """Whether *value* must be elided from the URL."""
        if any(value is marker or value == marker for marker in _ELIDED):
            return True
        return bool(value == self.default)

    def decode(self, raw: str | None) -> T:
        """Decode a raw query-string value; absent or invalid input gives the default."""
        if raw is None:
            return self.default
        try:
            return self.deserialize(raw)
        except (ValueError, TypeError, KeyError):
            return self.default

    def accepts(self, raw: str) -> bool:
        """Whether *raw* decodes without falling back to the default."""
        try:
            self.deserialize(raw)
        except (ValueError, TypeError, KeyError):
            return False
        return True

    def normalize(self, value: Any) -> T:
        """The value a reader would see after *value* is written and read back.

        Out-of-domain values (``limit=7``, an unknown sort order) collapse to
        what decoding gives, which is usually the default.
        """
        if self.is_default(value):
            return self.default
        try:
            return self.decode(self.serialize(value))
        except (ValueError, TypeError, KeyError):
            return self.default

    def encode(self, value: T) -> str | None:
        """Serialize *value*, or return None when it must be elided.

        Elision is decided on the normalized value, so a write never puts
        a parameter in the URL that reads back as the default.
        """
        value = self.normalize(value)
        if self.is_default(value):
            return None
        return self.serialize(value)


# ── Built-in codecs ───────────────────────────────────────────────────


def text_field(key: str, default: str = "") -> FieldDescriptor[str]:
    """Free-text field (search terms, ids)."""
    return FieldDescriptor(key=key, default=default, serialize=str, deserialize=str)


def choice_field(key: str, choices: Sequence[str], default: str) -> FieldDescriptor[str]:
    """String field restricted to *choices*; anything else decodes to *default*."""
    allowed = frozenset(choices) | {default}

    def _deserialize(raw: str) -> str:
        if raw not in allowed:
            msg = f"{raw!r} is not one of {sorted(allowed)}"
            raise ValueError(msg)
        return raw

    return FieldDescriptor(key=key, default=default, serialize=str, deserialize=_deserialize)


def page_field(key: str = "page") -> FieldDescriptor[int]:
    """1-based page number.

    Examples:
        >>> page_field().decode("abc"), page_field().decode("0"), page_field().decode("-5")
        (1, 1, 1)
        >>> page_field().decode("7")
        7
    """

    def _deserialize(raw: str) -> int:
        value = int(raw, 10)
        if value < 1:
            msg = f"page must be >= 1, got {value}"
            raise ValueError(msg)
        return value

    return FieldDescriptor(key=key, default=1, serialize=str, deserialize=_deserialize)


def int_choice_field(
    key: str,
    allowed: Sequence[int],
    default: int,
    *,
    fallback: Literal["default", "nearest"] = "default",
) -> FieldDescriptor[int]:
    """Integer field restricted to a discrete set (page sizes).

    With ``fallback="default"`` an out-of-set integer decodes to *default*;
    with ``fallback="nearest"`` it snaps to the closest member (ties go to
    the smaller one).  Non-integer input always decodes to *default*.
    """
    members = tuple(sorted(set(allowed) | {default}))

    def _deserialize(raw: str) -> int:
        value = int(raw, 10)
        if value in members:
            return value
        if fallback == "nearest":
            return min(members, key=lambda m: (abs(m - value), m))
        msg = f"{value} is not one of {list(members)}"
        raise ValueError(msg)

    return FieldDescriptor(key=key, default=default, serialize=str, deserialize=_deserialize)


def float_field(key: str, default: float | None = None) -> FieldDescriptor[float | None]:
    """Optional finite float (score bounds)."""

    def _serialize(value: float | None) -> str:
        return "" if value is None else repr(float(value))

    def _deserialize(raw: str) -> float | None:
        value = float(raw)
        if not math.isfinite(value):
            msg = f"{raw!r} is not a finite number"
            raise ValueError(msg)
        return value

    return FieldDescriptor(key=key, default=default, serialize=_serialize, deserialize=_deserialize)
