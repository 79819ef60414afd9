"""QueryStateService — CLI-facing operations returning ServiceResult.

Each operation builds the library objects it needs (history, controller,
cache, API client) from :class:`QuerystateSettings`, runs them, and turns
exceptions into failed results. Raw values that had to be repaired are
reported as warnings rather than errors.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from querystate.domain.filters import SCHEMAS, FilterSchema, get_schema
from querystate.domain.keys import key
from querystate.infrastructure.history import MemoryHistory
from querystate.infrastructure.http import ApiClient, FetchError
from querystate.services.filter_set import FilterSetController
from querystate.services.request_cache import QueryDisabledError, RequestCache
from querystate.services.result import ErrorCode, ServiceResult
from querystate.services.url_state import UrlStateStore

if TYPE_CHECKING:
    import httpx

    from querystate.config.settings import QuerystateSettings
    from querystate.domain.filters import FilterBag
    from querystate.domain.policy import CachePolicy
    from querystate.infrastructure.session import SessionContext
    from querystate.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


def _repairs(schema: FilterSchema, raw: Mapping[str, str]) -> list[str]:
    warnings: list[str] = []
    for name, value in raw.items():
        if name in schema.keys and not schema.field(name).accepts(value):
            default = schema.field(name).default
            warnings.append(f"{name}={value!r} is not valid; using {default!r}")
    return warnings


def _policy_payload(name: str, policy: CachePolicy) -> dict[str, Any]:
    return {
        "resource": name,
        "stale_time": policy.stale_time,
        "gc_time": policy.gc_time,
        "retries": policy.retry.retries,
        "backoff": [policy.retry_delay(n) for n in range(policy.retry.retries)],
        "refetch_on_reconnect": policy.refetch_on_reconnect,
        "refetch_on_window_focus": policy.refetch_on_window_focus,
        "requires_auth": policy.requires_auth,
    }


class QueryStateService:
    """Operations behind the ``querystate`` CLI.

    Args:
        settings: Loaded configuration.
        session: Session capability for auth-gated resource classes.
        plugin_manager: Receives URL, query and mutation hooks.
        transport: httpx transport override (tests use ``httpx.MockTransport``).
        sleep: Retry backoff coroutine.
    """

    def __init__(
        self,
        settings: QuerystateSettings,
        *,
        session: SessionContext | None = None,
        plugin_manager: PluginManager | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._session = session
        self._pm = plugin_manager
        self._transport = transport
        self._sleep = sleep

    # ── URL state ────────────────────────────────────────────────────

    def normalize_url(self, schema_name: str, url: str) -> ServiceResult:
        """Decode *url* under *schema_name* and re-encode it canonically."""
        op = "normalize_url"
        schema = self._schema(schema_name)
        if schema is None:
            return self._unknown_schema(op, schema_name)

        raw = MemoryHistory(url).read_all_params()
        bag = schema.from_params(raw)
        canonical = MemoryHistory(url)
        canonical.replace_params({**self._foreign(schema, canonical), **bag.to_params()})
        return ServiceResult.success(
            op,
            self._url_payload(schema, canonical, bag, input_url=url),
            warnings=_repairs(schema, raw),
        )

    def set_filters(self, schema_name: str, url: str, changes: Mapping[str, str]) -> ServiceResult:
        """Apply raw ``key=value`` *changes* to *url* as one replace."""
        op = "set_filters"
        schema = self._schema(schema_name)
        if schema is None:
            return self._unknown_schema(op, schema_name)

        unknown = sorted(k for k in changes if k not in schema.keys)
        if unknown:
            return ServiceResult.failure(
                op,
                ErrorCode.INVALID_QUERY,
                f"Unknown field(s) for schema {schema.name!r}: {', '.join(unknown)}",
                fields=unknown,
                allowed=list(schema.keys),
            )

        history = MemoryHistory(url)
        controller = self._controller(schema, history)
        controller.update(**{k: schema.field(k).decode(v) for k, v in changes.items()})
        return ServiceResult.success(
            op,
            self._url_payload(schema, history, controller.read_filter_bag(), input_url=url),
            warnings=_repairs(schema, changes),
            meta={"replaces": history.replace_count},
        )

    def clear_filters(self, schema_name: str, url: str) -> ServiceResult:
        """Reset every field of *schema_name* in *url* in one replace."""
        op = "clear_filters"
        schema = self._schema(schema_name)
        if schema is None:
            return self._unknown_schema(op, schema_name)

        history = MemoryHistory(url)
        controller = self._controller(schema, history)
        cleared = controller.read_filter_bag().active_keys()
        controller.clear_all()
        data = self._url_payload(schema, history, controller.read_filter_bag(), input_url=url)
        data["cleared"] = cleared
        return ServiceResult.success(op, data, meta={"replaces": history.replace_count})

    # ── Keys and policies ────────────────────────────────────────────

    def build_key(
        self,
        kind: str,
        *,
        resource_id: str | None = None,
        schema_name: str | None = None,
        url: str | None = None,
        params: Mapping[str, str] | None = None,
    ) -> ServiceResult:
        """Derive the canonical cache key for a resource request."""
        op = "build_key"
        if not kind.strip("/"):
            return ServiceResult.failure(op, ErrorCode.INVALID_QUERY, "Resource kind must not be empty")

        bag: Mapping[str, Any] | None = params
        if schema_name is not None:
            schema = self._schema(schema_name)
            if schema is None:
                return self._unknown_schema(op, schema_name)
            bag = schema.from_params(MemoryHistory(url or "/").read_all_params())

        query_key = key(kind.strip("/"), resource_id, bag)
        return ServiceResult.success(
            op,
            {
                "key": str(query_key),
                "kind": query_key.kind,
                "resource_id": query_key.resource_id,
                "params": query_key.params,
            },
        )

    def show_policy(self, resource: str | None = None) -> ServiceResult:
        """List configured cache policies, or the effective one for *resource*."""
        op = "show_policy"
        manager = self._settings.policy_manager()
        if resource is not None:
            items = [_policy_payload(resource, manager.for_resource(resource))]
        else:
            items = [_policy_payload("queries", manager.default)]
            items.append(_policy_payload("mutations", manager.mutation_policy()))
            items.extend(_policy_payload(name, p) for name, p in sorted(manager.resources().items()))
        config = self._settings.config_path
        return ServiceResult.success(
            op,
            {"items": items},
            meta={"config": str(config) if config else None, "config_source": str(self._settings.config_source)},
        )

    # ── Fetch ────────────────────────────────────────────────────────

    def fetch(
        self,
        path: str,
        *,
        kind: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        schema_name: str | None = None,
        url: str | None = None,
    ) -> ServiceResult:
        """Fetch *path* through a fresh :class:`RequestCache` (blocking)."""
        return asyncio.run(
            self.fetch_async(
                path,
                kind=kind,
                resource=resource,
                resource_id=resource_id,
                schema_name=schema_name,
                url=url,
            )
        )

    async def fetch_async(
        self,
        path: str,
        *,
        kind: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        schema_name: str | None = None,
        url: str | None = None,
    ) -> ServiceResult:
        op = "fetch"
        params: dict[str, str] = {}
        bag: FilterBag | None = None
        if schema_name is not None:
            schema = self._schema(schema_name)
            if schema is None:
                return self._unknown_schema(op, schema_name)
            bag = schema.from_params(MemoryHistory(url or "/").read_all_params())
            params = bag.to_params()

        query_key = key((kind or path).strip("/") or "root", resource_id, bag)
        manager = self._settings.policy_manager()
        policy = manager.for_resource(resource) if resource else manager.default
        logger.debug("fetch %s key=%s", path, query_key)
        cache = RequestCache(
            manager,
            session=self._session,
            sleep=self._sleep,
            plugin_manager=self._pm,
        )
        attempts = 0
        started = time.perf_counter()

        async with ApiClient(
            self._settings.api.base_url,
            session=self._session,
            timeout=self._settings.api.timeout,
            transport=self._transport,
        ) as api:

            async def _fetcher() -> Any:
                nonlocal attempts
                attempts += 1
                return await api.get(path, params=params or None)

            try:
                body = await cache.fetch(query_key, _fetcher, policy)
            except QueryDisabledError as exc:
                return ServiceResult.failure(op, ErrorCode.UNAUTHENTICATED, str(exc), key=str(query_key))
            except FetchError as exc:
                return ServiceResult.failure(
                    op,
                    ErrorCode.FETCH_FAILED,
                    exc.message,
                    key=str(query_key),
                    status_code=exc.status_code,
                    attempts=attempts,
                )

        return ServiceResult.success(
            op,
            {"key": str(query_key), "status": str(cache.snapshot(query_key).status), "body": body},
            meta={"attempts": attempts, "elapsed_ms": round((time.perf_counter() - started) * 1000, 1)},
        )

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _schema(name: str) -> FilterSchema | None:
        try:
            return get_schema(name)
        except KeyError:
            return None

    @staticmethod
    def _unknown_schema(op: str, name: str) -> ServiceResult:
        return ServiceResult.failure(
            op,
            ErrorCode.UNKNOWN_SCHEMA,
            f"Unknown filter schema {name!r}",
            available=sorted(SCHEMAS),
        )

    @staticmethod
    def _foreign(schema: FilterSchema, history: MemoryHistory) -> dict[str, str]:
        return {k: v for k, v in history.read_all_params().items() if k not in schema.keys}

    def _controller(self, schema: FilterSchema, history: MemoryHistory) -> FilterSetController:
        return FilterSetController(schema, UrlStateStore(history, plugin_manager=self._pm))

    @staticmethod
    def _url_payload(
        schema: FilterSchema,
        history: MemoryHistory,
        bag: FilterBag,
        *,
        input_url: str,
    ) -> dict[str, Any]:
        return {
            "schema": schema.name,
            "input": input_url,
            "url": str(history.location),
            "query": history.location.query,
            "filters": dict(bag),
            "active": bag.active_keys(),
        }


