"""Root CLI group for querystate with global flags and command registration."""

from __future__ import annotations

import click

from querystate import __version__
from querystate.commands import register_commands
from querystate.commands._context import AppContext
from querystate.config.settings import QuerystateSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="querystate")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """querystate — URL filter state and query-cache toolkit."""
    settings = QuerystateSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
