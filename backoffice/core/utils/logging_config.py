"""
Structured logging for the back-office API.

Production emits one JSON object per line; development gets a coloured
single-line format. Inside a request every record also carries the HTTP
method, path and the authenticated user id (see RequestContextFilter).
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone

from flask import g, has_request_context, request

LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
RESET = '\033[0m'


def _record_fields(record: logging.LogRecord) -> dict:
    """Extra fields from LogContext / log_with_context plus the request fields."""
    fields = dict(getattr(record, 'extra', None) or {})
    for key in ('http_method', 'http_path', 'request_user_id'):
        value = getattr(record, key, None)
        if value is not None:
            fields.setdefault(key, value)
    return fields


class RequestContextFilter(logging.Filter):
    """Attach method, path and user id when logging inside a Flask request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.http_method = request.method
            record.http_path = request.path
            # Set by Flask-Login once a route has loaded the user; never forces a load
            user = g.get('_login_user')
            record.request_user_id = user.id if getattr(user, 'is_authenticated', False) else None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f'{record.module}:{record.lineno}',
        }
        entry.update(_record_fields(record))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured `[HH:MM:SS] LEVEL logger message | k=v` lines."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, '')
        reset = RESET if color else ''
        line = (f"{color}[{datetime.now():%H:%M:%S}] {record.levelname:8}{reset} "
                f"{record.name:38} {record.getMessage()}")

        fields = _record_fields(record)
        if fields:
            line += ' | ' + ' '.join(f'{k}={v}' for k, v in fields.items())
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = 'INFO', json_format: bool = None,
                  logger_name: str = 'backoffice') -> logging.Logger:
    """Configure the `backoffice` logger tree and return its root.

    json_format defaults to True when PRODUCTION=true or the app runs
    under gunicorn.
    """
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true' or \
            'gunicorn' in os.environ.get('SERVER_SOFTWARE', '')

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # create_app() may run several times in one process (tests)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = 'backoffice') -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Add fields to every record created inside the block.

        with LogContext(logger, user_id=3, rows=120):
            logger.info('Bulk upsert started')
    """

    def __init__(self, logger: logging.Logger, **fields):
        self.logger = logger
        self.fields = fields
        self._previous_factory = None

    def __enter__(self):
        self._previous_factory = logging.getLogRecordFactory()
        previous, fields = self._previous_factory, self.fields

        def factory(*args, **kwargs):
            record = previous(*args, **kwargs)
            record.extra = {**(getattr(record, 'extra', None) or {}), **fields}
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self._previous_factory)
        return False


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log `message` with structured fields.

        log_with_context(logger, logging.INFO, 'Salary status changed',
                         salary_id=12, old_status='pending', new_status='approved')
    """
    if not logger.isEnabledFor(level):
        return
    record = logger.makeRecord(logger.name, level, '', 0, message, (), None)
    record.extra = {**(getattr(record, 'extra', None) or {}), **context}
    logger.handle(record)
