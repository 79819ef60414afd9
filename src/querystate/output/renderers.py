"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from querystate.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from querystate.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode: the URL or key alone."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {msg}"

    for field in ("url", "key"):
        if field in result.data:
            return str(result.data[field])
    items = result.data.get("items")
    if items and isinstance(items, list):
        return "\n".join(str(item.get("resource", "")) for item in items)
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text.assemble(("OK", "qs.ok"), (f"  {result.op}", "qs.op")))


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="qs.key")
    if isinstance(value, (dict, list)):
        v = Text(_json.dumps(value, separators=(",", ":")))
    elif key == "url":
        v = Text(str(value), style="qs.url")
    elif key == "key":
        v = Text(str(value), style="qs.cache_key")
    elif key == "status":
        v = Text(str(value), style=style_for_status(str(value)))
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        console.print(f"    {k}: {v}", markup=False)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text.assemble(
            ("ERROR", "qs.error"),
            (f"  {result.op}", "qs.op"),
            (code, "qs.warning"),
            " - ",
            msg,
        )
    )

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}", markup=False)


# ── URL renderers ─────────────────────────────────────────────────────


def _render_url(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render normalize/set/clear results: the URL plus the active filters."""
    _status_line(console, result)
    d = result.data
    _field(console, "url", d.get("url", ""))
    if d.get("cleared") is not None:
        _field(console, "cleared", ", ".join(d["cleared"]) or "-")

    filters = d.get("filters", {})
    active = d.get("active", [])
    if active or verbose:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Field", style="qs.key", no_wrap=True)
        table.add_column("Value")
        for name, value in filters.items():
            if verbose or name in active:
                table.add_row(name, Text("" if value is None else str(value)))
        console.print(table)
    if verbose:
        _render_meta(console, result)


# ── Key and policy renderers ──────────────────────────────────────────


def _render_key(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "key", d.get("key", ""))
    if verbose:
        for name in ("kind", "resource_id", "params"):
            if d.get(name):
                _field(console, name, d[name])


def _render_policy(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Resource", style="qs.op", no_wrap=True)
    table.add_column("Stale (s)", justify="right")
    table.add_column("GC (s)", justify="right")
    table.add_column("Retries", justify="right")
    table.add_column("Backoff (s)")
    table.add_column("Reconnect")
    table.add_column("Focus")
    if verbose:
        table.add_column("Auth")

    for item in result.data.get("items", []):
        row = [
            str(item["resource"]),
            f"{item['stale_time']:g}",
            f"{item['gc_time']:g}",
            str(item["retries"]),
            ", ".join(f"{d:g}" for d in item["backoff"]) or "-",
            "yes" if item["refetch_on_reconnect"] else "no",
            "yes" if item["refetch_on_window_focus"] else "no",
        ]
        if verbose:
            row.append("yes" if item["requires_auth"] else "no")
        table.add_row(*row)
    console.print(table)


def _render_fetch(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "key", d.get("key", ""))
    _field(console, "status", d.get("status", ""))
    body = d.get("body")
    console.print(Text("  body:", style="qs.key"))
    console.print(_json.dumps(body, indent=2, ensure_ascii=False), markup=False)
    if verbose:
        _render_meta(console, result)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "normalize_url": _render_url,
    "set_filters": _render_url,
    "clear_filters": _render_url,
    "build_key": _render_key,
    "show_policy": _render_policy,
    "fetch": _render_fetch,
}
