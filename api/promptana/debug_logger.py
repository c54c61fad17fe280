"""
Debug Logging

This module provides:
- Logging setup with a correlation ID on every record
- A correlation scope for tagging all log lines of one request
- A decorator that times and logs database-backed operations
"""

import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from pathlib import Path
from typing import Optional, Union

from promptana.config import database_config

LOG_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s] [%(correlation_id)s] %(message)s'

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

logger = logging.getLogger(__name__)


class CorrelationIDFilter(logging.Filter):
    """Stamp each record with the active correlation ID"""

    def filter(self, record):
        record.correlation_id = _correlation_id.get() or 'no-request'
        return True


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None):
    """Run a block of work under one correlation ID"""
    token = _correlation_id.set(correlation_id or str(uuid.uuid4())[:8])
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Path] = None,
    log_file: str = "debug.log"
) -> logging.Logger:
    """
    Install stream and file handlers on the promptana logger.

    Args:
        level: Logging level for the promptana logger
        log_dir: Directory for the log file (defaults to DB_LOG_DIR)
        log_file: File name inside log_dir

    Returns:
        The configured promptana logger
    """
    root = logging.getLogger("promptana")
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    directory = Path(log_dir or database_config.DB_LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in (logging.StreamHandler(), logging.FileHandler(directory / log_file, encoding='utf-8')):
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIDFilter())
        root.addHandler(handler)

    return root


def log_database_operation(operation: str):
    """Decorator to log database operations"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            start_time = time.perf_counter()
            logger.debug(f"{operation}: started ({f.__name__})")

            try:
                result = f(*args, **kwargs)
            except Exception:
                duration = (time.perf_counter() - start_time) * 1000
                logger.warning(f"{operation}: failed after {duration:.1f}ms")
                raise

            duration = (time.perf_counter() - start_time) * 1000
            logger.info(f"{operation}: completed in {duration:.1f}ms")
            return result

        return decorated_function
    return decorator
