"""Shared Click building blocks for querystate commands.

QsCommand and QsGroup carry sample invocations behind an eager
``--examples`` flag.  The ``--schema`` option and ``NAME=VALUE`` parsing
used by the url, key and fetch commands live here too.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import click

from querystate.domain.filters import SCHEMAS

F = TypeVar("F", bound=Callable[..., Any])


def _example_lines(examples: str | Sequence[str] | None) -> tuple[str, ...]:
    if not examples:
        return ()
    if isinstance(examples, str):
        examples = inspect.cleandoc(examples).splitlines()
    return tuple(line.strip() for line in examples if line.strip())


class ExamplesMixin:
    """Adds ``--examples`` to a Click command when it is given sample lines."""

    examples: tuple[str, ...] = ()
    params: list[click.Parameter]

    def _init_examples(self, examples: str | Sequence[str] | None) -> None:
        self.examples = _example_lines(examples)
        if self.examples:
            self.params.append(
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=self._show_examples,
                    help="Show sample invocations and exit.",
                )
            )

    def _show_examples(self, ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        for line in self.examples:
            click.echo(f"  {line}")
        ctx.exit(0)


class QsCommand(ExamplesMixin, click.Command):
    """Leaf command with optional ``examples``."""

    def __init__(self, *args: Any, examples: str | Sequence[str] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)


class QsGroup(ExamplesMixin, click.Group):
    """Command group whose subcommands default to :class:`QsCommand`."""

    command_class = QsCommand

    def __init__(self, *args: Any, examples: str | Sequence[str] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)


def schema_option(*, default: str | None = None, help_text: str) -> Callable[[F], F]:
    """``--schema`` restricted to the registered filter schemas, passed as ``schema_name``."""
    return click.option(
        "--schema",
        "schema_name",
        type=click.Choice(sorted(SCHEMAS)),
        default=default,
        show_default=default is not None,
        help=help_text,
    )


def parse_pairs(items: Sequence[str], *, label: str, param_hint: str) -> dict[str, str]:
    """Split ``NAME=VALUE`` arguments; later duplicates win."""
    pairs: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name:
            msg = f"Expected {label}=VALUE, got {item!r}"
            raise click.BadParameter(msg, param_hint=param_hint)
        pairs[name] = value
    return pairs
