"""Structured JSON logging for mdportable.

Each record becomes one JSON line.  Sync and store events carry document
ids, revisions and error codes as top-level keys, passed in through
``extra={"extra_fields": {...}}``::

    {"ts": "2026-01-05T09:30:00.120000+00:00", "level": "INFO",
     "logger": "mdportable.sync", "message": "Sync succeeded",
     "operation": "update", "document_type": "log", "document_id": "doc-1"}

Extra fields go through :func:`~mdportable.utils.redact.redact` first, so
a bearer header or an inline ``data:`` image pasted into Markdown never
lands in a log line verbatim.

Usage::

    from mdportable.observability import get_logger

    log = get_logger("mdportable.sync")
    log.info("Sync succeeded", extra={"extra_fields": {"document_id": "doc-1"}})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from mdportable.utils.redact import redact

_RESERVED = ("ts", "level", "logger", "message")


class StructuredFormatter(logging.Formatter):
    """Render a :class:`logging.LogRecord` as one JSON object.

    ``ts`` is the record's creation time in UTC.  Extra fields are redacted
    and merged at the top level but never replace ``ts``, ``level``,
    ``logger`` or ``message``; a clashing extra is kept as ``extra_<key>``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields = getattr(record, "extra_fields", None)
        if fields:
            for key, value in redact(dict(fields)).items():
                entry[f"extra_{key}" if key in _RESERVED else key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def _level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _structured_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if isinstance(handler.formatter, StructuredFormatter):
            return handler
    return None


def get_logger(
    name: str = "mdportable",
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Return *name* with a JSON-lines handler attached.

    The handler is added once per logger; later calls return the logger
    untouched.  Records do not propagate to the root logger.

    Parameters
    ----------
    name:
        Logger name, e.g. ``"mdportable.pipeline"``.
    level:
        Minimum level as an ``int`` or a case-insensitive name such as
        ``"warning"``.  Unknown names raise :class:`ValueError`.
    stream:
        Handler output.  Defaults to ``sys.stderr``.
    """
    logger = logging.getLogger(name)
    if _structured_handler(logger) is None:
        logger.setLevel(_level(level))
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    return logger
