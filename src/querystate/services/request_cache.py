"""Request cache — coalesced, policy-driven fetching keyed by QueryKey.

Single-threaded cooperative model: every mutation of the entry table
runs on one asyncio event loop, and suspension happens only inside the
fetcher and the retry sleeps.  No locks are needed; the one discipline
is key currency (below).

INVARIANT: At most one outstanding fetch per key.  Concurrent
``request()``/``fetch()`` calls share a single ``asyncio.Task`` and all
observe its single outcome.  A fetch started after its key was removed
waits for the orphaned one to finish before calling its fetcher.
INVARIANT: Entry state changes follow
:data:`~querystate.domain.lifecycle.ENTRY_TRANSITIONS`.
INVARIANT: A fetch commits only if its entry is still in the table under
the same generation.  Results for removed or superseded entries are
discarded silently; observers ignore settlements for keys they no
longer follow.
INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from querystate.domain.keys import QueryKey
from querystate.domain.lifecycle import EntryStatus, QueryStatus, check_transition
from querystate.domain.policy import CachePolicy, CachePolicyManager, RetryPolicy

if TYPE_CHECKING:
    from querystate.infrastructure.session import SessionContext
    from querystate.plugins.manager import PluginManager

logger = logging.getLogger(__name__)
log = structlog.get_logger("querystate.cache")

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[Any]]


class QueryDisabledError(RuntimeError):
    """Raised by :meth:`RequestCache.fetch` when the query may not run.

    Either the caller disabled it or its policy requires an authenticated
    session and there is none.
    """


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """What a consumer sees for one key at one instant."""

    status: QueryStatus
    data: T | None = None
    error: BaseException | None = None
    is_fetching: bool = False
    is_stale: bool = False
    updated_at: float | None = None

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR


Listener = Callable[[QueryResult[Any]], None]


@dataclass(eq=False)
class CacheEntry:
    """One cached value and its fetch bookkeeping."""

    key: QueryKey
    policy: CachePolicy
    data: Any = None
    has_data: bool = False
    fetched_at: float | None = None
    error: BaseException | None = None
    failed: bool = False
    in_flight: asyncio.Task[Any] | None = None
    fetcher: Fetcher | None = None
    listeners: list[Listener | None] = field(default_factory=list)
    detached_at: float | None = None
    generation: int = 0
    invalidated: bool = False

    @property
    def subscribers(self) -> int:
        return len(self.listeners)

    def is_stale(self, now: float) -> bool:
        if not self.has_data or self.invalidated or self.fetched_at is None:
            return True
        return now - self.fetched_at > self.policy.stale_time

    def status(self, now: float) -> EntryStatus:
        if self.in_flight is not None:
            return EntryStatus.FETCHING
        if self.failed:
            return EntryStatus.ERROR
        if not self.has_data:
            return EntryStatus.ABSENT
        return EntryStatus.STALE if self.is_stale(now) else EntryStatus.FRESH

    def needs_fetch(self, now: float) -> bool:
        return self.in_flight is None and (self.failed or self.is_stale(now))

    def collectable(self, now: float) -> bool:
        if self.subscribers or self.in_flight is not None or self.detached_at is None:
            return False
        return now - self.detached_at >= self.policy.gc_time


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Background revalidations may have no awaiter; the error lives on the entry.
    if not task.cancelled():
        task.exception()


class RequestCache:
    """In-memory query cache with coalescing and stale-while-revalidate.

    Parameters:
        policies: Resource-class policies; defaults to the stock query policy.
        session: Authentication gate for ``requires_auth`` policies.
        clock: Monotonic clock in seconds (injectable for tests).
        sleep: Coroutine used for retry backoff (injectable for tests).
        plugin_manager: Receives ``query_settled``/``mutation_settled`` hooks.
    """

    def __init__(
        self,
        policies: CachePolicyManager | None = None,
        *,
        session: SessionContext | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self._policies = policies or CachePolicyManager()
        self._session = session
        self._clock = clock
        self._sleep = sleep
        self._pm = plugin_manager
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._orphans: dict[QueryKey, asyncio.Task[Any]] = {}

    @property
    def policies(self) -> CachePolicyManager:
        return self._policies

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def entry_status(self, key: QueryKey) -> EntryStatus:
        entry = self._entries.get(key)
        if entry is None:
            return EntryStatus.ABSENT
        return entry.status(self._clock())

    def snapshot(self, key: QueryKey) -> QueryResult[Any]:
        """Current result for *key* without triggering any fetch."""
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult(status=QueryStatus.LOADING, is_stale=True)
        return self._result(entry)

    def request(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        policy: CachePolicy | None = None,
        *,
        enabled: bool = True,
    ) -> QueryResult[Any]:
        """Return the cached result immediately, fetching in the background if needed.

        Absent, stale and errored entries start (or join) a fetch; a stale
        value stays readable while it revalidates.  Must be called from a
        running event loop.
        """
        self.collect_garbage()
        policy = policy or self._policies.default
        if not self._may_run(policy, enabled=enabled):
            return self.snapshot(key)

        entry = self._ensure_entry(key, policy)
        entry.fetcher = fetcher
        if entry.needs_fetch(self._clock()):
            self._start_fetch(entry)
        return self._result(entry)

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        policy: CachePolicy | None = None,
        *,
        enabled: bool = True,
    ) -> Any:
        """Return fresh data for *key*, awaiting the (shared) fetch if needed.

        Raises the fetcher's final exception once the retry policy is
        exhausted, or :class:`QueryDisabledError` if the query may not run.
        """
        self.collect_garbage()
        policy = policy or self._policies.default
        if not self._may_run(policy, enabled=enabled):
            msg = f"Query {key} is disabled"
            raise QueryDisabledError(msg)

        entry = self._ensure_entry(key, policy)
        entry.fetcher = fetcher
        if entry.in_flight is None:
            if not entry.needs_fetch(self._clock()):
                return entry.data
            self._start_fetch(entry)
        assert entry.in_flight is not None
        return await asyncio.shield(entry.in_flight)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_data(self, key: QueryKey, data: Any, policy: CachePolicy | None = None) -> None:
        """Store *data* as a fresh value for *key* (optimistic/known updates)."""
        entry = self._ensure_entry(key, policy or self._policies.default)
        self._transition(entry, EntryStatus.FRESH)
        entry.invalidated = False
        self._store(entry, data)
        self._settle(entry)

    def invalidate(self, prefix: QueryKey | str) -> list[QueryKey]:
        """Mark every entry under *prefix* stale; refetch the subscribed ones.

        Entries with a fetch already in flight are only marked, so the
        next request after settlement revalidates them again.
        """
        matched: list[QueryKey] = []
        for entry in list(self._entries.values()):
            if not entry.key.matches(prefix):
                continue
            matched.append(entry.key)
            entry.invalidated = True
            if entry.subscribers and entry.in_flight is None and entry.fetcher is not None:
                self._start_fetch(entry)
        logger.debug("cache.invalidate %s matched=%d", prefix, len(matched))
        return matched

    def remove(self, prefix: QueryKey | str) -> list[QueryKey]:
        """Drop every entry under *prefix*; in-flight results for them are discarded."""
        removed = [key for key in self._entries if key.matches(prefix)]
        for key in removed:
            self._evict(key)
        return removed

    def clear(self) -> None:
        for key in list(self._entries):
            self._evict(key)

    def collect_garbage(self) -> list[QueryKey]:
        """Evict entries with no subscribers for at least their ``gc_time``."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.collectable(now)]
        for key in expired:
            self._evict(key)
        if expired:
            logger.debug("cache.gc evicted=%d", len(expired))
        return expired

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        key: QueryKey,
        listener: Listener | None = None,
        policy: CachePolicy | None = None,
    ) -> Callable[[], None]:
        """Attach a subscriber to *key*; returns a detach callable.

        While an entry has subscribers it is never garbage-collected.
        """
        entry = self._ensure_entry(key, policy or self._policies.default)
        entry.listeners.append(listener)
        entry.detached_at = None
        detached = False

        def _detach() -> None:
            nonlocal detached
            if detached:
                return
            detached = True
            entry.listeners.remove(listener)
            if not entry.listeners:
                entry.detached_at = self._clock()

        return _detach

    def observe(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        policy: CachePolicy | None = None,
        listener: Listener | None = None,
    ) -> QueryObserver:
        """Create a :class:`QueryObserver` following *key*."""
        return QueryObserver(self, key, fetcher, policy=policy, listener=listener)

    # ------------------------------------------------------------------
    # Refetch triggers
    # ------------------------------------------------------------------

    def on_reconnect(self) -> list[QueryKey]:
        """Revalidate subscribed stale/errored entries whose policy allows it."""
        return self._refetch_where(lambda p: p.refetch_on_reconnect, trigger="reconnect")

    def on_window_focus(self) -> list[QueryKey]:
        """Revalidate on focus regain (off in the default policy)."""
        return self._refetch_where(lambda p: p.refetch_on_window_focus, trigger="focus")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def mutate(
        self,
        mutation: Fetcher,
        *,
        name: str = "mutation",
        invalidates: Iterable[QueryKey | str] = (),
        policy: CachePolicy | None = None,
    ) -> Any:
        """Run a write with the mutation retry policy, then invalidate *invalidates*.

        The final exception propagates to the caller after retries.
        """
        policy = policy or self._policies.mutation_policy()
        if not self._may_run(policy, enabled=True):
            msg = f"Mutation {name} requires an authenticated session"
            raise QueryDisabledError(msg)

        try:
            result = await self._with_retry(name, mutation, policy.retry)
        except Exception as exc:
            self._dispatch("mutation_settled", name=name, ok=False, error=str(exc))
            raise

        for prefix in invalidates:
            self.invalidate(prefix)
        self._dispatch("mutation_settled", name=name, ok=True, error=None)
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _may_run(self, policy: CachePolicy, *, enabled: bool) -> bool:
        if not enabled:
            return False
        if policy.requires_auth:
            return self._session is not None and self._session.is_authenticated
        return True

    def _ensure_entry(self, key: QueryKey, policy: CachePolicy) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, policy=policy, detached_at=self._clock())
            self._entries[key] = entry
        else:
            entry.policy = policy
        return entry

    def _result(self, entry: CacheEntry) -> QueryResult[Any]:
        if entry.failed:
            status = QueryStatus.ERROR
        elif entry.has_data:
            status = QueryStatus.SUCCESS
        else:
            status = QueryStatus.LOADING
        return QueryResult(
            status=status,
            data=entry.data,
            error=entry.error if entry.failed else None,
            is_fetching=entry.in_flight is not None,
            is_stale=entry.is_stale(self._clock()),
            updated_at=entry.fetched_at,
        )

    def _transition(self, entry: CacheEntry, target: EntryStatus) -> None:
        check_transition(entry.status(self._clock()), target)

    def _evict(self, key: QueryKey) -> None:
        entry = self._entries[key]
        self._transition(entry, EntryStatus.ABSENT)
        del self._entries[key]
        task = entry.in_flight
        if task is not None and not task.done():
            # A later fetch for this key queues behind the orphan.
            self._orphans[key] = task
            task.add_done_callback(lambda done, key=key: self._forget_orphan(key, done))

    def _forget_orphan(self, key: QueryKey, task: asyncio.Task[Any]) -> None:
        if self._orphans.get(key) is task:
            del self._orphans[key]

    def _start_fetch(self, entry: CacheEntry) -> asyncio.Task[Any]:
        assert entry.fetcher is not None
        self._transition(entry, EntryStatus.FETCHING)
        entry.generation += 1
        entry.invalidated = False
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(
                entry,
                entry.fetcher,
                entry.generation,
                after=self._orphans.pop(entry.key, None),
            )
        )
        task.add_done_callback(_consume_exception)
        entry.in_flight = task
        log.debug("cache.fetch.start", key=entry.key, generation=entry.generation)
        return task

    def _is_current(self, entry: CacheEntry, generation: int) -> bool:
        return self._entries.get(entry.key) is entry and entry.generation == generation

    async def _run_fetch(
        self,
        entry: CacheEntry,
        fetcher: Fetcher,
        generation: int,
        *,
        after: asyncio.Task[Any] | None = None,
    ) -> Any:
        if after is not None:
            log.debug("cache.fetch.queued", key=entry.key, generation=generation)
            await asyncio.wait([after])
        try:
            data = await self._with_retry(str(entry.key), fetcher, entry.policy.retry)
        except Exception as exc:
            if self._is_current(entry, generation):
                self._commit_failure(entry, exc)
            else:
                log.debug("cache.commit.superseded", key=entry.key, generation=generation)
            raise
        if self._is_current(entry, generation):
            self._commit_success(entry, data)
        else:
            log.debug("cache.commit.superseded", key=entry.key, generation=generation)
        return data

    async def _with_retry(self, label: str, call: Fetcher, retry: RetryPolicy) -> Any:
        attempt = 0
        while True:
            try:
                return await call()
            except Exception as exc:
                if not retry.should_retry(attempt) or getattr(exc, "retryable", True) is False:
                    raise
                delay = retry.delay(attempt)
                log.warning(
                    "cache.fetch.retry",
                    key=label,
                    attempt=attempt + 1,
                    max_attempts=retry.max_attempts,
                    delay=delay,
                    error=str(exc),
                )
                await self._sleep(delay)
                attempt += 1

    def _store(self, entry: CacheEntry, data: Any) -> None:
        entry.data = data
        entry.has_data = True
        entry.fetched_at = self._clock()
        entry.error = None
        entry.failed = False

    def _commit_success(self, entry: CacheEntry, data: Any) -> None:
        self._transition(entry, EntryStatus.FRESH)
        entry.in_flight = None
        self._store(entry, data)
        self._settle(entry)

    def _commit_failure(self, entry: CacheEntry, exc: BaseException) -> None:
        # The last good value stays readable.
        self._transition(entry, EntryStatus.ERROR)
        entry.in_flight = None
        entry.error = exc
        entry.failed = True
        self._settle(entry)

    def _settle(self, entry: CacheEntry) -> None:
        if not entry.listeners:
            entry.detached_at = self._clock()
        result = self._result(entry)
        log.debug("cache.fetch.settled", key=entry.key, status=str(result.status))
        for listener in list(entry.listeners):
            if listener is not None:
                listener(result)
        self._dispatch(
            "query_settled",
            key=entry.key,
            status=str(result.status),
            error=str(entry.error) if entry.failed else None,
        )

    def _refetch_where(self, allowed: Callable[[CachePolicy], bool], *, trigger: str) -> list[QueryKey]:
        now = self._clock()
        started: list[QueryKey] = []
        for entry in list(self._entries.values()):
            if not entry.subscribers or entry.fetcher is None or not allowed(entry.policy):
                continue
            if not self._may_run(entry.policy, enabled=True) or not entry.needs_fetch(now):
                continue
            self._start_fetch(entry)
            started.append(entry.key)
        logger.debug("cache.refetch trigger=%s started=%d", trigger, len(started))
        return started

    def _dispatch(self, hook_name: str, **payload: Any) -> None:
        if self._pm is not None:
            self._pm.dispatch(hook_name, **payload)


class QueryObserver:
    """A consumer's subscription that follows one key at a time.

    Switching keys detaches from the old entry first, so a slow fetch for
    a superseded key can never reach this observer's listener.

    Usage::

        observer = cache.observe(QueryKeys.tests_list(bag), fetch_tests)
        result = observer.result()
        observer.set_key(QueryKeys.tests_list(new_bag), fetch_new)
    """

    def __init__(
        self,
        cache: RequestCache,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        policy: CachePolicy | None = None,
        listener: Listener | None = None,
    ) -> None:
        self._cache = cache
        self._key = key
        self._fetcher = fetcher
        self._policy = policy
        self._listener = listener
        self._detach: Callable[[], None] | None = None
        self._attach()

    @property
    def key(self) -> QueryKey:
        return self._key

    def result(self) -> QueryResult[Any]:
        """Current result; starts or joins a fetch when the entry needs one."""
        return self._cache.request(self._key, self._fetcher, self._policy)

    def set_key(
        self,
        key: QueryKey,
        fetcher: Fetcher | None = None,
        policy: CachePolicy | None = None,
    ) -> QueryResult[Any]:
        """Follow *key* instead of the current one and return its result."""
        if fetcher is not None:
            self._fetcher = fetcher
        if policy is not None:
            self._policy = policy
        if key != self._key:
            self._release()
            self._key = key
            self._attach()
        return self.result()

    def close(self) -> None:
        self._release()

    def _attach(self) -> None:
        self._detach = self._cache.subscribe(self._key, self._on_settled, self._policy)

    def _release(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def _on_settled(self, result: QueryResult[Any]) -> None:
        if self._detach is None or self._listener is None:
            return
        self._listener(result)
