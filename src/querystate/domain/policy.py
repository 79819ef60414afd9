"""Per-resource cache policies and retry backoff.

Retry count and backoff are pure functions of the attempt index,
injected per resource class instead of living inside the HTTP client.

Defaults mirror the dashboard's query client:
- queries: fresh for 5 minutes, evicted 10 minutes after the last
  subscriber leaves, 3 retries with ``min(1s * 2**n, 30s)`` backoff,
  refetch on reconnect but never on window focus (focus changes are
  frequent during an exam and must not trigger refetch storms);
- mutations: 1 retry after a constant 1 second.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class RetryPolicy(BaseModel):
    """How many times to retry and how long to wait before each retry.

    ``retries`` counts retries after the first attempt, so a read policy
    with ``retries=3`` makes at most four calls.
    """

    model_config = {"frozen": True}

    retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    factor: float = Field(default=2.0, ge=1)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delay(self, attempt: int) -> float:
        """Delay before retry number *attempt* (0-based): ``min(base * factor**n, cap)``."""
        return min(self.base_delay * self.factor**attempt, self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        """Whether a failure on 0-based *attempt* may be retried."""
        return attempt < self.retries


class CachePolicy(BaseModel):
    """Freshness, eviction, retry and refetch-trigger policy for one resource class.

    Durations are in seconds.
    """

    model_config = {"frozen": True}

    stale_time: float = Field(default=300.0, ge=0)
    gc_time: float = Field(default=600.0, ge=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    refetch_on_reconnect: bool = True
    refetch_on_window_focus: bool = False
    requires_auth: bool = False

    @model_validator(mode="before")
    @classmethod
    def _coerce_retry_count(cls, data: object) -> object:
        # ``retry = 2`` in TOML is shorthand for ``[retry] retries = 2``.
        if isinstance(data, dict) and isinstance(data.get("retry"), int):
            return {**data, "retry": {"retries": data["retry"]}}
        return data

    def retry_delay(self, attempt: int) -> float:
        return self.retry.delay(attempt)


DEFAULT_QUERY_POLICY = CachePolicy()
DEFAULT_MUTATION_POLICY = CachePolicy(
    stale_time=0.0,
    gc_time=0.0,
    retry=RetryPolicy(retries=1, base_delay=1.0, max_delay=1.0, factor=1.0),
    refetch_on_reconnect=False,
)


class CachePolicyManager:
    """Registry of cache policies keyed by resource class.

    Unknown resource classes get the default query policy.
    """

    def __init__(
        self,
        *,
        default: CachePolicy | None = None,
        mutation: CachePolicy | None = None,
        resources: dict[str, CachePolicy] | None = None,
    ) -> None:
        self._default = default or DEFAULT_QUERY_POLICY
        self._mutation = mutation or DEFAULT_MUTATION_POLICY
        self._resources: dict[str, CachePolicy] = dict(resources or {})

    @property
    def default(self) -> CachePolicy:
        return self._default

    def register(self, resource: str, policy: CachePolicy) -> None:
        """Register (or replace) the policy for *resource*."""
        self._resources[resource] = policy

    def for_resource(self, resource: str) -> CachePolicy:
        """Policy for *resource*, falling back to the default query policy."""
        return self._resources.get(resource, self._default)

    def mutation_policy(self) -> CachePolicy:
        return self._mutation

    def resources(self) -> dict[str, CachePolicy]:
        return dict(self._resources)
