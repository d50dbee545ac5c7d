from __future__ import annotations

import json
import logging
import sys

ROOT_LOGGER = "bithub"
TEXT_FORMAT = "%(asctime)s %(levelname)s | %(name)s | %(message)s"

# Client libraries that log every request at INFO; the gate reports what matters.
_NOISY_LOGGERS = ("httpx", "httpcore")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(json_logs: bool = False, level: int | str = logging.INFO) -> None:
    """Route all bridge logs to stderr; stdout carries the CLI's JSON results."""
    root = logging.getLogger()
    if any(getattr(h, "_bithub", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLogFormatter() if json_logs else logging.Formatter(TEXT_FORMAT))
    handler._bithub = True  # type: ignore[attr-defined]

    root.handlers.clear()
    root.setLevel(_resolve_level(level))
    root.addHandler(handler)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
