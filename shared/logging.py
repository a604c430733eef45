"""
Structured logging.

Every logger handed out by get_logger is a child of the "videogen" logger,
which owns the handlers: one JSON object per line to stdout and to a rotating
file. Records emitted inside job_context() carry that job's id, which is how
the interleaved output of concurrent orchestrator runs is told apart.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional, Union
from uuid import UUID

from shared.config import settings

ROOT_LOGGER = "videogen"
LOG_FILE = Path("logs") / "videogen.log"
LOG_FILE_MAX_BYTES = 50 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_current_job: ContextVar[Optional[str]] = ContextVar("current_job", default=None)

# Attributes every LogRecord has; anything else arrived through `extra`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """Renders a record as a single JSON line, non-ASCII text kept readable."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name.removeprefix(f"{ROOT_LOGGER}."),
            "message": record.getMessage(),
        }

        job_id = _current_job.get()
        if job_id is not None:
            entry["job_id"] = job_id

        entry.update(
            (key, _plain(value))
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def configure_logging(level: Optional[str] = None, log_file: Optional[Path] = LOG_FILE) -> logging.Logger:
    """
    Attach the JSON handlers to the "videogen" logger.

    Idempotent: a second call only adjusts the level.

    Args:
        level: Level name (default: settings.log_level)
        log_file: Rotating log file, or None for stdout only
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level or settings.log_level)
    if root.handlers:
        return root

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )

    formatter = JSONFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, configuring output on first use."""
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        configure_logging()
    return root.getChild(name)


@contextmanager
def job_context(job_id: Union[UUID, str]) -> Iterator[None]:
    """Tag every record logged inside the block with job_id."""
    token = _current_job.set(str(job_id))
    try:
        yield
    finally:
        _current_job.reset(token)


def get_job_id() -> Optional[str]:
    """Job id of the enclosing job_context, if any."""
    return _current_job.get()
