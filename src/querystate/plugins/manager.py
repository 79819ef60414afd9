"""PluginManager: registers querystate plugins and fans hook calls out to them.

Third-party plugins are found through the ``querystate.plugins`` entry
point group.  Callers in the URL store and the cache go through
:meth:`PluginManager.dispatch`, so a failing plugin is logged and the
state change that triggered it stands.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

import pluggy

from querystate.plugins.hookspecs import QuerystateHookSpec

PROJECT_NAME = "querystate"
ENTRY_POINT_GROUP = "querystate.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(QuerystateHookSpec)

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance, named after its class unless *name* is given."""
        resolved = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved)
        logger.debug("Registered plugin: %s", resolved)

    def discover_and_load(self) -> list[str]:
        """Load entry-point plugins and return the names of every registered plugin.

        Entry points may name a plugin class; it is replaced by an instance,
        and a class that cannot be built is dropped with a warning.
        """
        found = self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        logger.debug("Loaded %d entry-point plugin(s) from %s", found, ENTRY_POINT_GROUP)
        for plugin in [p for p in self._pm.get_plugins() if inspect.isclass(p)]:
            name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)
            try:
                self._pm.register(plugin(), name=name)
            except Exception:
                logger.warning("Dropping plugin %s: it could not be instantiated", name, exc_info=True)
        return self.list_plugin_names()

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    def dispatch(self, hook_name: str, **payload: Any) -> None:
        """Call *hook_name* on every plugin; a failing plugin only logs a warning."""
        try:
            getattr(self._pm.hook, hook_name)(**payload)
        except Exception:
            logger.warning("Plugin hook %s failed", hook_name, exc_info=True)
