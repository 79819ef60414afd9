"""Command: derive the canonical cache key for a resource request."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from querystate.commands._base import QsCommand, parse_pairs, schema_option

if TYPE_CHECKING:
    from querystate.commands._context import AppContext


@click.command(
    cls=QsCommand,
    examples="""\
  querystate key tests/list --schema tests --url "/tests?search=math&page=2"
  querystate key tests/detail --id 42
  querystate key tutor/tests --id t1 -p status=published -p page=1""",
)
@click.argument("kind")
@click.option("--id", "resource_id", default=None, help="Resource identifier.")
@schema_option(help_text="Decode --url with this filter schema.")
@click.option("--url", "target", default=None, help="URL whose filters feed the key.")
@click.option("-p", "--param", "params", multiple=True, help="Raw NAME=VALUE parameter.")
@click.pass_obj
def key(
    app: AppContext,
    kind: str,
    resource_id: str | None,
    schema_name: str | None,
    target: str | None,
    params: tuple[str, ...],
) -> None:
    """Print the canonical cache key for KIND."""
    if params and schema_name:
        raise click.UsageError("--param and --schema are mutually exclusive.")
    raw = parse_pairs(params, label="NAME", param_hint="--param")
    app.emit(
        app.service().build_key(
            kind,
            resource_id=resource_id,
            schema_name=schema_name,
            url=target,
            params=raw or None,
        )
    )
