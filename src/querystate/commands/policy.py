"""Command: show the effective cache policies."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from querystate.commands._base import QsCommand

if TYPE_CHECKING:
    from querystate.commands._context import AppContext


@click.command(
    cls=QsCommand,
    examples="""\
  querystate policy
  querystate policy analytics
  querystate --json policy""",
)
@click.argument("resource", required=False)
@click.pass_obj
def policy(app: AppContext, resource: str | None) -> None:
    """Show configured cache policies, or the one RESOURCE resolves to."""
    app.emit(app.service().show_policy(resource))
