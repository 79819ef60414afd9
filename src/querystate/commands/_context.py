"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Provides lazy plugin loading and centralized
result emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import click

from querystate.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from querystate.config.settings import QuerystateSettings
    from querystate.infrastructure.session import SessionContext
    from querystate.plugins.manager import PluginManager
    from querystate.services.inspector import QueryStateService
    from querystate.services.result import ServiceResult

logger = logging.getLogger(__name__)


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    Plugins are loaded on first use so ``--help`` and ``--version`` never
    scan entry points.
    """

    def __init__(self, settings: QuerystateSettings) -> None:
        self.settings = settings
        self._plugin_manager: PluginManager | None = None

        from querystate.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def plugin_manager(self) -> PluginManager:
        """The plugin manager (created and populated lazily)."""
        if self._plugin_manager is None:
            from querystate.plugins.builtins.notifier import NotifierPlugin
            from querystate.plugins.manager import PluginManager

            pm = PluginManager()
            plugins = self.settings.plugins
            if plugins.enabled:
                if plugins.notifier.get("enabled", True):
                    pm.register_plugin(NotifierPlugin(), name="notifier")
                try:
                    pm.discover_and_load()
                except Exception:
                    logger.warning("Plugin discovery failed", exc_info=True)
            self._plugin_manager = pm
        return self._plugin_manager

    def service(self, session: SessionContext | None = None) -> QueryStateService:
        """Build the CLI service for this invocation."""
        from querystate.services.inspector import QueryStateService

        return QueryStateService(self.settings, session=session, plugin_manager=self.plugin_manager)

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings are emitted to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
