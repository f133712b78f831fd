"""
Structured logging for the market viewer.

Events are emitted through log_event() with an event name and keyword
metadata. With JSON Lines enabled every record is one JSON object; the
markets request sequence number, when the event carries one, is lifted out
of the metadata to a top-level "seq" field so one dispatch can be followed
from markets_dispatched to markets_loaded/markets_failed/markets_result_stale:

    {"ts": "2024-01-15T10:30:00Z", "level": "INFO", "session_id": "abc123",
     "event": "markets_dispatched", "seq": 3, "module": "state",
     "msg": "Markets fetch dispatched", "extra": {"params": {"vs_currency": "eur"}}}

Without JSON Lines, records are rendered as one terse text line:

    INFO markets_dispatched seq=3 Markets fetch dispatched params={'vs_currency': 'eur'}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

SEQUENCE_FIELD = "sequence"


@dataclass(frozen=True)
class LogSettings:
    """
    Configuration for logger initialization.

    Attributes:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        session_id: Identifier included in every entry of this process.
        log_file: Optional path to log file (None for console only).
        jsonl: If True, use JSON Lines format; otherwise plain text.
    """
    level: str
    session_id: str
    log_file: Path | None
    jsonl: bool


def _split_sequence(record: logging.LogRecord) -> tuple[str, int | None, dict[str, Any]]:
    event = getattr(record, "event", "log")
    extra = getattr(record, "extra", {})
    if not isinstance(extra, dict):
        extra = {"value": extra}
    extra = dict(extra)
    sequence = extra.pop(SEQUENCE_FIELD, None)
    return event, sequence, extra


class JsonLineFormatter(logging.Formatter):
    """Logging formatter that emits one JSON object per record."""

    def __init__(self, session_id: str):
        super().__init__()
        self._session_id = session_id

    def format(self, record: logging.LogRecord) -> str:
        event, sequence, extra = _split_sequence(record)

        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "session_id": self._session_id,
            "event": event,
        }
        if sequence is not None:
            payload["seq"] = sequence
        payload.update(module=record.module, msg=record.getMessage(), extra=extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class EventLineFormatter(logging.Formatter):
    """Plain-text counterpart: level, event, optional seq, message, then key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        event, sequence, extra = _split_sequence(record)
        parts = [record.levelname, event]
        if sequence is not None:
            parts.append(f"seq={sequence}")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in extra.items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def build_logger(settings: LogSettings) -> logging.Logger:
    """
    Create an isolated (non-propagating) logger for one viewer session.

    Console output is always attached; a file handler is added when
    settings.log_file is set.
    """
    logger = logging.getLogger(f"marketview.{settings.session_id}")
    logger.setLevel(settings.level)
    logger.handlers.clear()
    logger.propagate = False

    formatter: logging.Formatter
    if settings.jsonl:
        formatter = JsonLineFormatter(settings.session_id)
    else:
        formatter = EventLineFormatter()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    message: str,
    *,
    exc_info: logging._ExcInfoType | None = None,
    **extra: Any,
) -> None:
    """
    Log a structured event with typed metadata.

    Example:
        >>> log_event(logger, logging.INFO, "markets_loaded",
        ...           "Markets loaded", sequence=4, rows=10)
    """
    logger.log(level, message, extra={"event": event, "extra": extra}, exc_info=exc_info)
