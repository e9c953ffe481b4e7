"""Logging for the fein-fiscal command line.

Commands print their results as JSON on stdout, so log records go to
stderr, either as plain lines or as one JSON object per record.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

LINE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", format_type: str = "standard") -> None:
    """Route all logging to one stderr handler at ``level``.

    Unknown level names fall back to INFO. Calling it again replaces the
    handler instead of adding a second one.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    formatter = JsonFormatter() if format_type == "json" else logging.Formatter(LINE_FORMAT)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level)
    logging.getLogger("fein_fiscal").setLevel(log_level)
