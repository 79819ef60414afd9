"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``QUERYSTATE_*`` prefix, ``__`` for nesting
  3. TOML file    — ``querystate.toml`` from --config, $QUERYSTATE_CONFIG or walk-up
  4. Code defaults — baked into the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from querystate.config.discovery import ConfigNotFoundError, ConfigSource, locate_config
from querystate.config.models import ApiConfig, CacheConfig, PluginsConfig
from querystate.domain.policy import CachePolicyManager


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``querystate.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class QuerystateSettings(BaseSettings):
    """Unified settings for the querystate CLI.

    Stored on the :class:`~querystate.commands._context.AppContext` at the
    CLI root level.

    Attributes:
        config_path: The TOML file that was loaded, or None.
        config_source: How that file was found.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "QUERYSTATE_",
        "env_nested_delimiter": "__",
    }

    config_path: Path | None = None
    config_source: ConfigSource = ConfigSource.NONE

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    api: ApiConfig = Field(default_factory=ApiConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        start: Path | None = None,
        **cli_flags: Any,
    ) -> QuerystateSettings:
        """Construct settings from a CLI invocation.

        See :func:`~querystate.config.discovery.locate_config` for how the
        TOML file is chosen; *start* is where walk-up begins (default: cwd).
        """
        try:
            location = locate_config(config_path, start=start)
        except ConfigNotFoundError as exc:
            raise click.ClickException(str(exc)) from exc

        _tls.toml_path = location.path
        try:
            return cls(config_path=location.path, config_source=location.source, **cli_flags)
        finally:
            _tls.toml_path = None

    def policy_manager(self) -> CachePolicyManager:
        """Cache policies as configured in ``[cache]``."""
        return self.cache.build_manager()
