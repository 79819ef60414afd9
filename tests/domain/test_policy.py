"""Tests for cache and retry policies."""

import pytest
from pydantic import ValidationError

from querystate.domain.policy import (
    DEFAULT_MUTATION_POLICY,
    DEFAULT_QUERY_POLICY,
    CachePolicy,
    CachePolicyManager,
    RetryPolicy,
)


class TestRetryPolicy:
    def test_default_backoff(self) -> None:
        retry = RetryPolicy()
        assert [retry.delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]

    def test_should_retry_counts_retries(self) -> None:
        retry = RetryPolicy(retries=3)
        assert retry.max_attempts == 4
        assert [retry.should_retry(n) for n in range(4)] == [True, True, True, False]

    def test_zero_retries(self) -> None:
        assert not RetryPolicy(retries=0).should_retry(0)

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(retries=-1)


class TestCachePolicy:
    def test_query_defaults(self) -> None:
        p = DEFAULT_QUERY_POLICY
        assert p.stale_time == 300.0
        assert p.gc_time == 600.0
        assert p.retry.retries == 3
        assert p.refetch_on_reconnect is True
        assert p.refetch_on_window_focus is False

    def test_mutation_defaults(self) -> None:
        p = DEFAULT_MUTATION_POLICY
        assert p.retry.retries == 1
        assert p.retry_delay(0) == 1.0

    def test_int_retry_shorthand(self) -> None:
        p = CachePolicy.model_validate({"retry": 5, "stale_time": 10})
        assert p.retry.retries == 5
        assert p.retry.base_delay == 1.0

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_QUERY_POLICY.stale_time = 1.0  # type: ignore[misc]


class TestCachePolicyManager:
    def test_unknown_resource_gets_default(self) -> None:
        assert CachePolicyManager().for_resource("anything") is DEFAULT_QUERY_POLICY

    def test_register(self) -> None:
        manager = CachePolicyManager()
        analytics = CachePolicy(stale_time=60.0)
        manager.register("analytics", analytics)
        assert manager.for_resource("analytics") is analytics
        assert manager.resources() == {"analytics": analytics}

    def test_custom_defaults(self) -> None:
        default = CachePolicy(stale_time=1.0)
        mutation = CachePolicy(retry=RetryPolicy(retries=0))
        manager = CachePolicyManager(default=default, mutation=mutation)
        assert manager.default is default
        assert manager.mutation_policy() is mutation
