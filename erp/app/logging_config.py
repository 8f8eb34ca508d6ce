"""Log formatting for the ERP service.

Every module logs through ``logging.getLogger(__name__)`` and attaches its
context as ``extra={"ctx": {...}}``. The formatter renders one line per record:

    2026-01-01 10:00:00 | INFO | erp.services.inventory | Stock created | {"stock_id": 3}
"""

from __future__ import annotations

import json
import logging
import sys

_HANDLER_NAME = "erp-console"


class ContextFormatter(logging.Formatter):
    """Appends the record's ``ctx`` mapping as compact JSON."""

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} | {record.levelname} | "
            f"{record.name} | {record.getMessage()}"
        )
        ctx = getattr(record, "ctx", None)
        if ctx:
            line += f" | {json.dumps(ctx, default=str, sort_keys=True)}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO") -> None:
    """Install the console handler on the ``erp`` logger. Safe to call twice."""
    root = logging.getLogger("erp")
    root.setLevel(level)

    for handler in root.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(ContextFormatter())
    root.addHandler(handler)
    root.propagate = False
