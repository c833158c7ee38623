"""Centralized logging configuration for Care Sync Service.

Every sync line carries the record kind and user it concerns, so one user's
sync history can be grepped out of `sync.log`:

    [2026-03-14 09:00:00] INFO reconciliation [tasks user=user-1] - Merged ...

Lines without sync context render as `[- user=-]`.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
from typing import Optional

LOG_DIR = os.path.join(os.path.dirname(__file__), 'logs')
os.makedirs(LOG_DIR, exist_ok=True)

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s [%(kind)s user=%(user_id)s] - %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class SyncContextFilter(logging.Filter):
    """Fill in `kind` and `user_id` on records logged without them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, 'kind', None) is None:
            record.kind = '-'
        if getattr(record, 'user_id', None) is None:
            record.user_id = '-'
        return True


def sync_context(logger: logging.Logger, kind: Optional[str] = None,
                 user_id: Optional[str] = None) -> logging.LoggerAdapter:
    """Wrap `logger` so every line it emits is tagged with a kind and user."""
    return logging.LoggerAdapter(logger, {'kind': kind, 'user_id': user_id})


def setup_logger(name: str, log_file: str = 'service.log') -> logging.Logger:
    """Setup logger with a rotating file handler and a console handler.

    Args:
        name: Logger name (usually __name__)
        log_file: Log file name, one per concern ('sync.log', 'store.log',
            'remote.log', 'api.log')

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers on re-import
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    context = SyncContextFilter()

    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, log_file),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler()

    for handler in (file_handler, console_handler):
        handler.setLevel(logging.INFO)
        handler.addFilter(context)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def configure_root_logger():
    """Quiet the web stack and HTTP/DB libraries down to warnings."""
    for noisy in ('uvicorn', 'uvicorn.access', 'fastapi', 'httpx', 'sqlalchemy'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


configure_root_logger()
