from __future__ import annotations

import json
import logging
import os
import socket
import time as _time
from datetime import datetime, timezone
from logging import Handler
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any

from churchcms.config import settings


_STANDARD_LOG_KEYS = set(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}


_LOGGING_INITIALIZED = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields are carried through."""

    def format(self, record: logging.LogRecord) -> str:
        _dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if not settings.log_utc:
            _dt = _dt.astimezone()

        payload: dict[str, Any] = {
            "time": _dt.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "lineno": record.lineno,
            "func": record.funcName,
            "process": record.process,
            "service": settings.app_name,
            "host": socket.gethostname(),
        }
        env_name = os.getenv("ENV") or os.getenv("ENVIRONMENT") or None
        if env_name:
            payload["environment"] = env_name
        for k, v in record.__dict__.items():
            if k not in _STANDARD_LOG_KEYS and k not in payload:
                try:
                    json.dumps(v)  # ensure serializable
                    payload[k] = v
                except (TypeError, ValueError):
                    payload[k] = str(v)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def _text_formatter() -> logging.Formatter:
    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    fmt.converter = _time.gmtime if settings.log_utc else _time.localtime  # type: ignore[assignment]
    return fmt


def _file_handler(log_path: Path) -> Handler:
    if settings.log_rotation.lower() == "time":
        return TimedRotatingFileHandler(
            filename=os.fspath(log_path),
            when=settings.log_when,
            interval=int(settings.log_interval),
            backupCount=int(settings.log_backup_count),
            encoding="utf-8",
            utc=settings.log_utc,
        )
    return RotatingFileHandler(
        filename=os.fspath(log_path),
        maxBytes=int(settings.log_max_bytes),
        backupCount=int(settings.log_backup_count),
        encoding="utf-8",
    )


def init_logging() -> None:
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Console: human-readable text; File: JSON (if enabled)
    text_formatter = _text_formatter()
    stream_handlers = [
        h for h in root.handlers if type(h) is logging.StreamHandler  # noqa: E721
    ]
    if not stream_handlers:
        sh = logging.StreamHandler()
        sh.setLevel(level)
        sh.setFormatter(text_formatter)
        root.addHandler(sh)
    else:
        # Keep the first, remove duplicates to avoid double logs
        stream_handlers[0].setFormatter(text_formatter)
        for h in stream_handlers[1:]:
            root.removeHandler(h)

    if settings.log_file_enabled:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / settings.log_file_name
        existing = [
            h for h in root.handlers
            if getattr(h, "baseFilename", None) == os.fspath(log_path.resolve())
        ]
        if not existing:
            fh = _file_handler(log_path)
            fh.setLevel(level)
            fh.setFormatter(JsonFormatter())
            root.addHandler(fh)

    # Align uvicorn formatters with the console format
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        for h in logging.getLogger(name).handlers:
            h.setFormatter(text_formatter)

    _LOGGING_INITIALIZED = True
