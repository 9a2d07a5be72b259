"""Logging setup: a compact console stream plus JSON-lines files.

Per-resource fields (``resource_id``, ``resource_kind``, ``operation``) are
carried in a context variable by :class:`LogContext` and stamped onto
records by :class:`ContextFilter`, which ``setup_logging`` installs on
every handler it creates.
"""

import logging
import json
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

ROOT_LOGGER = 'obsync'

# Record attributes copied into structured output when present
CONTEXT_FIELDS = ('resource_id', 'resource_kind', 'operation', 'outcome', 'duration')

_context: ContextVar[Dict[str, Any]] = ContextVar('obsync_log_context', default={})


class ContextFilter(logging.Filter):
    """Copy the active LogContext fields onto each record passing through."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """Formatter that emits one JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        log_data.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """One line per record: time, level, optional resource label, message.

    Level names are coloured only when ``color`` is set, which
    ``setup_logging`` does for terminals.
    """

    LEVEL_COLORS = {
        logging.DEBUG: '36',
        logging.INFO: '32',
        logging.WARNING: '33',
        logging.ERROR: '31',
        logging.CRITICAL: '35',
    }

    def __init__(self, color: bool = False):
        super().__init__(datefmt='%H:%M:%S')
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.color and record.levelno in self.LEVEL_COLORS:
            level = f"\033[{self.LEVEL_COLORS[record.levelno]}m{level}\033[0m"

        message = record.getMessage()
        resource_id = getattr(record, 'resource_id', None)
        if resource_id:
            kind = getattr(record, 'resource_kind', None)
            message = f"[{kind}/{resource_id}] {message}" if kind else f"[{resource_id}] {message}"

        line = f"{self.formatTime(record, self.datefmt)} {level} {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(log_level: str = 'info', log_dir: Optional[str] = '.obsync/logs',
                  stream: Optional[TextIO] = None) -> None:
    """Configure the root logger for a CLI run.

    Console output goes to stderr so command output on stdout stays clean.
    When ``log_dir`` is set, every record down to DEBUG is also written to a
    daily JSON-lines file in that directory.

    Args:
        log_level: Console level (debug, info, warning, error)
        log_dir: Directory for JSON log files, or None to disable file logging
        stream: Console stream, stderr by default
    """
    level = getattr(logging, log_level.upper())
    stream = stream or sys.stderr
    context_filter = ContextFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_dir else level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter(color=stream.isatty()))
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        log_file = path / f"obsync-{datetime.now(timezone.utc):%Y%m%d}.jsonl"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(context_filter)
        root_logger.addHandler(file_handler)

    # Reduce noise from the HTTP stack
    for noisy in ('urllib3', 'requests'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, nested under the ``obsync`` logger."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + '.'):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def current_context() -> Dict[str, Any]:
    """Fields of the innermost active LogContext."""
    return dict(_context.get())


class LogContext:
    """Attach structured fields to every record logged inside the block.

    Contexts nest; inner fields override outer ones for the duration of
    the inner block.

    Example:
        with LogContext(resource_id="prom-1", resource_kind="grafana.datasource"):
            logger.info("applied")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _context.set({**_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _context.reset(self._token)
            self._token = None
