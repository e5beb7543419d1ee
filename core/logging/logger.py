# ==============================
# Logging Bootstrap
# ==============================
"""
Logging bootstrap.

Goals:
- Centralize logger configuration using Settings.logging.
- Provide structured context fields (dataset, path, request_id, route).
- Keep it simple: stdlib logging + JSON-line formatter.

No persistence here.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config.schema import Settings

CONTEXT_FIELDS = ("dataset", "path", "request_id", "route", "status", "latency_ms")
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class LogContext:
    dataset: Optional[str] = None
    path: Optional[str] = None
    request_id: Optional[str] = None
    route: Optional[str] = None


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # Optional structured extras
        for k in CONTEXT_FIELDS:
            value = getattr(record, k, None)
            if value is not None:
                payload[k] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def bootstrap_logger(settings: Settings, *, verbose: bool = False) -> logging.Logger:
    """
    Configure root logger based on settings.
    Returns a named logger ("csv2api").
    """
    level_name = "DEBUG" if verbose else settings.logging.level.upper()
    level = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # clear existing handlers to avoid duplicates in reload
    root.handlers = []

    if settings.logging.console:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        if settings.logging.json_lines:
            handler.setFormatter(JsonLineFormatter())
        else:
            handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        root.addHandler(handler)
    else:
        root.addHandler(logging.NullHandler())

    return logging.getLogger("csv2api")


def with_context(logger: logging.Logger, ctx: LogContext) -> logging.LoggerAdapter:
    return logging.LoggerAdapter(logger, {k: v for k, v in asdict(ctx).items() if v is not None})
