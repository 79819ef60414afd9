"""Locating ``querystate.toml``.

The first of these wins:

1. ``--config PATH`` on the command line
2. the ``QUERYSTATE_CONFIG`` environment variable
3. the nearest ``querystate.toml`` in the start directory or one of its
   parents, the way git looks for ``.git/``

A path named by the flag or the variable must exist.  Finding nothing by
walking up is fine: settings then come from env vars and defaults only.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

CONFIG_FILENAME = "querystate.toml"
CONFIG_ENV_VAR = "QUERYSTATE_CONFIG"


class ConfigSource(StrEnum):
    FLAG = "flag"
    ENV = "env"
    WALK_UP = "walk-up"
    NONE = "none"


class ConfigNotFoundError(FileNotFoundError):
    """A config path was named explicitly but there is no file there."""

    def __init__(self, path: Path, source: ConfigSource) -> None:
        origin = f"${CONFIG_ENV_VAR}" if source is ConfigSource.ENV else "--config"
        super().__init__(f"Config file not found: {path} (from {origin})")
        self.path = path
        self.source = source


@dataclass(frozen=True)
class ConfigLocation:
    path: Path | None
    source: ConfigSource


def locate_config(explicit: str | Path | None = None, *, start: Path | None = None) -> ConfigLocation:
    """Resolve which config file applies, walking up from *start* (default: cwd)."""
    if explicit:
        return _existing(Path(explicit), ConfigSource.FLAG)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return _existing(Path(env_path), ConfigSource.ENV)
    found = find_config(start)
    return ConfigLocation(found, ConfigSource.WALK_UP if found else ConfigSource.NONE)


def find_config(start: Path | None = None) -> Path | None:
    """Nearest ``querystate.toml`` in *start* or its parents, or None."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _existing(path: Path, source: ConfigSource) -> ConfigLocation:
    if not path.is_file():
        raise ConfigNotFoundError(path, source)
    return ConfigLocation(path, source)
