"""Canonical cache keys.

A :class:`QueryKey` addresses one cache entry.  Parameters are encoded
sorted by field name with defaults elided by the same rule the URL
writer applies, so two logically equal filter bags built through
different code paths yield byte-identical keys.

INVARIANT: Cache lookup and request coalescing compare keys by value,
never by the identity of the bag they were derived from.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from querystate.domain.filters import TEST_FILTERS, FilterBag, FilterSchema

KIND_SEPARATOR = "/"


@dataclass(frozen=True)
class QueryKey:
    """Ordered ``(kind, resource_id, params)`` triple.

    Attributes:
        kind: ``/``-separated namespace, e.g. ``"tests/list"``.
        resource_id: Optional resource identifier.
        params: Canonical ``name=value&...`` encoding (may be empty).
    """

    kind: str
    resource_id: str | None = None
    params: str = ""

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self.kind.split(KIND_SEPARATOR))

    def matches(self, prefix: QueryKey | str) -> bool:
        """Whether this key falls under *prefix* (used for invalidation).

        A prefix matches on whole kind segments; a prefix carrying a
        resource id or params must match those exactly as well.
        """
        if isinstance(prefix, str):
            prefix = QueryKey(prefix)
        wanted = prefix.segments
        if self.segments[: len(wanted)] != wanted:
            return False
        if prefix.resource_id is not None and prefix.resource_id != self.resource_id:
            return False
        return not prefix.params or prefix.params == self.params

    def __str__(self) -> str:
        text = self.kind
        if self.resource_id is not None:
            text += f"{KIND_SEPARATOR}{self.resource_id}"
        if self.params:
            text += f"?{self.params}"
        return text


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Sequence) and not isinstance(value, str):
        return ",".join(_stringify(v) for v in value)
    return str(value)


def _plain_pairs(values: Mapping[str, Any]) -> dict[str, str]:
    return {str(name): _stringify(value) for name, value in values.items() if value is not None and value != ""}


def canonical_params(bag: Mapping[str, Any] | None, schema: FilterSchema | None = None) -> str:
    """Encode *bag* as a sorted, minimal query string.

    A :class:`FilterBag` is reduced with its own descriptors (defaults
    dropped).  A plain mapping drops ``None`` and empty-string values but
    knows nothing of defaults, so ``{"page": 1}`` stays in the key; pass
    *schema* to reduce the fields it declares the way a bag would.
    """
    if not bag:
        return ""
    if isinstance(bag, FilterBag):
        pairs = bag.to_params()
    elif schema is not None:
        known = {name: value for name, value in bag.items() if name in schema.keys}
        pairs = schema.defaults().replace(**known).to_params()
        pairs.update(_plain_pairs({k: v for k, v in bag.items() if k not in known}))
    else:
        pairs = _plain_pairs(bag)
    return urlencode(sorted(pairs.items()))


def key(
    kind: str,
    resource_id: str | None = None,
    bag: Mapping[str, Any] | None = None,
    *,
    schema: FilterSchema | None = None,
) -> QueryKey:
    """Build the canonical key for *kind* / *resource_id* / *bag*."""
    return QueryKey(kind=kind, resource_id=resource_id, params=canonical_params(bag, schema))


class QueryKeys:
    """Key factories for the dashboard's resources.

    Kinds nest so that invalidating a parent (``"tests"``) reaches every
    list, detail and result key below it.
    """

    @staticmethod
    def user() -> QueryKey:
        return key("user")

    @staticmethod
    def user_profile(user_id: str) -> QueryKey:
        return key("user/profile", user_id)

    @staticmethod
    def tests_list(filters: Mapping[str, Any] | None = None) -> QueryKey:
        return key("tests/list", bag=filters, schema=TEST_FILTERS)

    @staticmethod
    def test_detail(test_id: str) -> QueryKey:
        return key("tests/detail", test_id)

    @staticmethod
    def test_results(test_id: str, attempt_id: str | None = None) -> QueryKey:
        return key("tests/results", test_id, {"attempt": attempt_id})

    @staticmethod
    def test_attempt_count(test_id: str) -> QueryKey:
        return key("test-attempts/count", test_id)

    @staticmethod
    def all_test_attempts(test_id: str) -> QueryKey:
        return key("test-attempts/all", test_id)

    @staticmethod
    def test_history(user_id: str) -> QueryKey:
        return key("test-attempts/history", user_id)

    @staticmethod
    def ai_analysis(attempt_id: str) -> QueryKey:
        return key("ai-analysis", attempt_id)

    @staticmethod
    def tutor_tests(tutor_id: str, filters: Mapping[str, Any] | None = None) -> QueryKey:
        return key("tutor/tests", tutor_id, filters)

    @staticmethod
    def tutor_students(tutor_id: str) -> QueryKey:
        return key("tutor/students", tutor_id)

    @staticmethod
    def tutor_analytics(tutor_id: str) -> QueryKey:
        return key("tutor/analytics", tutor_id)

    @staticmethod
    def student_invitations(tutor_id: str) -> QueryKey:
        return key("student-invitations", tutor_id)

    @staticmethod
    def user_rewards(user_id: str) -> QueryKey:
        return key("rewards/user", user_id)

    @staticmethod
    def admin_tests(filters: Mapping[str, Any] | None = None) -> QueryKey:
        return key("admin/tests", bag=filters, schema=TEST_FILTERS)

    @staticmethod
    def admin_users(filters: Mapping[str, Any] | None = None) -> QueryKey:
        return key("admin/users", bag=filters)

    @staticmethod
    def admin_analytics() -> QueryKey:
        return key("admin/analytics")
