"""structlog setup for the querystate CLI.

Both structlog loggers (the cache's ``querystate.cache`` event log) and
plain stdlib loggers render through one stderr handler, as console text
or, with ``--log-json``, one JSON object per line.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

from querystate.domain.keys import QueryKey

# Loggers that stay at WARNING whatever the verbosity.
_NOISY_LOGGERS = ("httpx", "httpcore")


class _QuerystateHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker type so reconfiguring replaces only our own handler."""


def _render_query_keys(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Log a :class:`QueryKey` in its ``kind/id?params`` form."""
    for name, value in event_dict.items():
        if isinstance(value, QueryKey):
            event_dict[name] = str(value)
    return event_dict


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route querystate logging to stderr.

    Args:
        verbose: Let querystate DEBUG events through; otherwise WARNING and up.
        log_json: Render JSON lines instead of console text.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _render_query_keys,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = _QuerystateHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, _QuerystateHandler)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("querystate").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
