"""JSON logging for the client and its CLI.

Every record is tagged with the emitting ``service`` and with the stream kind
when one is attached through ``extra``. Streaming tickets are single-use
credentials, so any ``ticket=<value>`` text is masked before it is written.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "bitcoinaverage"
TICKET_PATTERN = re.compile(r"(ticket=)[^&\s'\"]+")


def redact(text: str) -> str:
    """Mask websocket ticket values embedded in URLs or messages."""

    return TICKET_PATTERN.sub(r"\1***", text)


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    _standard_attrs = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

    def __init__(self, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - logging interface name
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }

        if record.exc_info:
            payload["exc_info"] = redact(self.formatException(record.exc_info))
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        for key, value in record.__dict__.items():
            if key in self._standard_attrs:
                continue
            payload[key] = redact(value) if isinstance(value, str) else value
        return json.dumps(payload, default=str)


def configure_logging(default_level: str = "INFO", service: Optional[str] = None) -> None:
    """Send JSON logs to stderr at ``LOG_LEVEL`` (or ``default_level``).

    stdout is left to the CLI's JSON payload output.
    """

    level_name = os.getenv("LOG_LEVEL", default_level)
    level = getattr(logging, level_name.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter(service or SERVICE_NAME))
    root.addHandler(handler)
    # websockets logs every frame at DEBUG, including the ticketed URL.
    logging.getLogger("websockets").setLevel(max(level, logging.INFO))


__all__ = ["JsonFormatter", "configure_logging", "redact", "SERVICE_NAME"]
