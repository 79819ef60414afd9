"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, querystate.toml only contains
overrides.  An empty file (or none at all) reproduces the dashboard's
stock query client.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from querystate.domain.policy import (
    DEFAULT_MUTATION_POLICY,
    DEFAULT_QUERY_POLICY,
    CachePolicy,
    CachePolicyManager,
)

# --- querystate.toml sections ---


class ApiConfig(BaseModel):
    """[api] section."""

    model_config = {"frozen": True}

    base_url: str = "http://localhost:5000"
    timeout: float = Field(default=30.0, gt=0)


class CacheConfig(BaseModel):
    """[cache] section.

    ``[cache.queries]`` and ``[cache.mutations]`` override the stock
    policies; ``[cache.resources.<name>]`` registers a resource class.
    """

    model_config = {"frozen": True}

    queries: CachePolicy = Field(default_factory=lambda: DEFAULT_QUERY_POLICY)
    mutations: CachePolicy = Field(default_factory=lambda: DEFAULT_MUTATION_POLICY)
    resources: dict[str, CachePolicy] = Field(default_factory=dict)

    def build_manager(self) -> CachePolicyManager:
        """Materialize a :class:`CachePolicyManager` from this section."""
        return CachePolicyManager(
            default=self.queries,
            mutation=self.mutations,
            resources=dict(self.resources),
        )


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    notifier: dict[str, Any] = Field(default_factory=lambda: {"enabled": True})
