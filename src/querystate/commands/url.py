"""Command group: normalize and edit filter state in a URL."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from querystate.commands._base import QsGroup, parse_pairs, schema_option

if TYPE_CHECKING:
    from querystate.commands._context import AppContext

_URL_EXAMPLES = """\
  querystate url normalize "/tests?page=1&limit=12&search=math"
  querystate url set "/tutors?page=5" search=math
  querystate url clear "/tutors?status=active&search=x&tab=2" --schema tutors"""

_schema_option = schema_option(default="tests", help_text="Filter schema the URL belongs to.")


@click.group(cls=QsGroup, examples=_URL_EXAMPLES)
def url() -> None:
    """Read and write typed filter state in a URL's query string."""


@url.command(
    examples="""\
  querystate url normalize "/tests?page=1&limit=12"
  querystate url normalize "/tests?page=abc&limit=7" --schema tests
  querystate --json url normalize "/students?minScore=50.0" --schema students"""
)
@click.argument("target")
@_schema_option
@click.pass_obj
def normalize(app: AppContext, target: str, schema_name: str) -> None:
    """Rewrite TARGET in canonical minimal form (defaults elided)."""
    app.emit(app.service().normalize_url(schema_name, target))


@url.command(
    name="set",
    examples="""\
  querystate url set "/tutors?page=5" search=math
  querystate url set "/tests" sortBy=title sortOrder=asc
  querystate url set "/tests?search=x" page=3""",
)
@click.argument("target")
@click.argument("assignments", nargs=-1, required=True)
@_schema_option
@click.pass_obj
def set_fields(app: AppContext, target: str, assignments: tuple[str, ...], schema_name: str) -> None:
    """Write FIELD=VALUE pairs into TARGET as a single replace.

    Changing any field other than page or limit resets the page.
    """
    app.emit(app.service().set_filters(schema_name, target, parse_pairs(assignments, label="FIELD", param_hint="ASSIGNMENTS")))


@url.command(
    examples="""\
  querystate url clear "/tutors?status=active&search=x"
  querystate url clear "/tests?type=mock&tab=results" --schema tests"""
)
@click.argument("target")
@_schema_option
@click.pass_obj
def clear(app: AppContext, target: str, schema_name: str) -> None:
    """Reset every schema field in TARGET; other parameters are kept."""
    app.emit(app.service().clear_filters(schema_name, target))
