"""Allow ``python -m querystate``."""

from querystate.cli import cli

cli()
