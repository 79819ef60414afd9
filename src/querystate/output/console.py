"""Rich Console factory and theme for querystate output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract.  In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

QS_THEME = Theme(
    {
        "qs.ok": "bold green",
        "qs.error": "bold red",
        "qs.warning": "bold yellow",
        "qs.op": "bold cyan",
        "qs.key": "dim",
        "qs.url": "bold blue",
        "qs.cache_key": "bold magenta",
        "qs.status.success": "green",
        "qs.status.loading": "yellow",
        "qs.status.error": "red",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "success": "qs.status.success",
    "loading": "qs.status.loading",
    "error": "qs.status.error",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=QS_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Return the Rich style name for a query status."""
    return _STATUS_STYLES.get(status, "")
