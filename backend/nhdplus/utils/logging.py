"""JSON log lines tagged with the id of the API request being served.

Lookups run deep inside the WFS and NLDI clients, far from the request
handler, so the request id travels in a context variable and a record
factory stamps it on every record instead of being threaded through calls.
"""
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

import orjson

NO_REQUEST = "-"

_request_id: ContextVar[str] = ContextVar("nhdplus_request_id", default=NO_REQUEST)

# LogRecord attributes that are not worth a key in the JSON line
_STANDARD_ATTRS = frozenset((
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName',
    'exc_info', 'exc_text', 'stack_info', 'message', 'request_id',
))


def current_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_context(request_id: str) -> Iterator[str]:
    """Tag every record logged inside the block with ``request_id``."""
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


def _install_record_factory() -> None:
    base_factory = logging.getLogRecordFactory()
    if getattr(base_factory, "stamps_request_id", False):
        return

    def factory(*args, **kwargs) -> logging.LogRecord:
        record = base_factory(*args, **kwargs)
        record.request_id = _request_id.get()
        return record

    factory.stamps_request_id = True
    logging.setLogRecordFactory(factory)


_install_record_factory()


class RequestJSONFormatter(logging.Formatter):
    """One JSON object per record: level, logger, request id, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'request_id': getattr(record, 'request_id', NO_REQUEST),
            'message': record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            entry['source'] = f"{record.module}:{record.lineno}"

        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        )

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return orjson.dumps(entry, default=str).decode()


def setup_logging(level: str = "INFO", stream: Optional[object] = None) -> None:
    """Send JSON lines for the ``nhdplus`` loggers and the server to one handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(RequestJSONFormatter())
    root_logger.addHandler(handler)

    # httpx logs each request at INFO; the transport logs its own
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
