"""Command: fetch a resource through the request cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from querystate.commands._base import QsCommand, schema_option
from querystate.infrastructure.session import SessionContext

if TYPE_CHECKING:
    from querystate.commands._context import AppContext


@click.command(
    cls=QsCommand,
    examples="""\
  querystate fetch /test --kind tests/list --schema tests --url "/tests?search=math"
  querystate fetch /test/42 --kind tests/detail --id 42
  QUERYSTATE_TOKEN=... querystate fetch /user/me --kind user --resource profile""",
)
@click.argument("path")
@click.option("--kind", default=None, help="Resource kind for the cache key (default: PATH).")
@click.option("--id", "resource_id", default=None, help="Resource identifier for the cache key.")
@click.option("--resource", default=None, help="Resource class whose cache policy applies.")
@schema_option(help_text="Decode --url with this filter schema and send its params.")
@click.option("--url", "target", default=None, help="URL whose filters become request params.")
@click.option("--token", envvar="QUERYSTATE_TOKEN", default=None, help="Bearer access token.")
@click.pass_obj
def fetch(
    app: AppContext,
    path: str,
    kind: str | None,
    resource_id: str | None,
    resource: str | None,
    schema_name: str | None,
    target: str | None,
    token: str | None,
) -> None:
    """GET PATH from the configured API, with the resource's retry policy."""
    session = SessionContext(access_token=token)
    app.emit(
        app.service(session).fetch(
            path,
            kind=kind,
            resource=resource,
            resource_id=resource_id,
            schema_name=schema_name,
            url=target,
        )
    )
