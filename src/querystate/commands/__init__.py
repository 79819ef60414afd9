"""Subcommand modules for querystate.

Provides register_commands() which uses deferred imports to keep
``querystate --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the ``url`` group and the standalone commands on the root group."""
    from querystate.commands.fetch import fetch
    from querystate.commands.key import key
    from querystate.commands.policy import policy
    from querystate.commands.url import url

    cli.add_command(url)
    cli.add_command(key)
    cli.add_command(policy)
    cli.add_command(fetch)
