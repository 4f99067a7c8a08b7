"""
Logging Context - Query ID Propagation

Every log line emitted during a resolution carries the query id of the
resolution it belongs to. Context-local storage keeps concurrent
resolutions on different threads apart.
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_query_id: ContextVar[str] = ContextVar("query_id", default="")
_table_version: ContextVar[str] = ContextVar("table_version", default="")

DEFAULT_LOG_FORMAT = (
    "[%(asctime)s] %(levelname)-8s "
    "[query_id=%(query_id)s] "
    "[table=%(table_version)s] "
    "%(name)s: %(message)s"
)


class QueryIdFilter(logging.Filter):
    """Adds query_id and table_version to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.query_id = _query_id.get() or "N/A"
        record.table_version = _table_version.get() or "N/A"
        return True


class LoggingContext:
    """Accessors for the current logging context."""

    @staticmethod
    def set_query_id(query_id: Optional[str] = None) -> str:
        """
        Set the query id, generating one when not supplied.

        Returns:
            The query id in effect.
        """
        if not query_id:
            query_id = f"q_{uuid.uuid4().hex[:12]}"
        _query_id.set(query_id)
        return query_id

    @staticmethod
    def get_query_id() -> str:
        return _query_id.get()

    @staticmethod
    def set_table_version(version: str) -> str:
        _table_version.set(version)
        return version

    @staticmethod
    def get_context() -> dict[str, str]:
        return {
            "query_id": _query_id.get(),
            "table_version": _table_version.get(),
        }

    @staticmethod
    def clear_context():
        _query_id.set("")
        _table_version.set("")

    @staticmethod
    @contextmanager
    def bind(query_id: Optional[str] = None, table_version: str = "") -> Iterator[str]:
        """
        Scope a query id (and table version) to a block, restoring the
        previous values on exit.
        """
        if not query_id:
            query_id = f"q_{uuid.uuid4().hex[:12]}"
        query_token = _query_id.set(query_id)
        version_token = _table_version.set(table_version)
        try:
            yield query_id
        finally:
            _table_version.reset(version_token)
            _query_id.reset(query_token)


class ContextualLogger:
    """
    Logger factory that attaches QueryIdFilter.

    Example:
        logger = ContextualLogger.get_logger(__name__)
        with LoggingContext.bind():
            logger.info("Resolving")  # carries query_id
    """

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        logger = logging.getLogger(name)
        if not any(isinstance(f, QueryIdFilter) for f in logger.filters):
            logger.addFilter(QueryIdFilter())
        return logger

    @staticmethod
    def configure_logging(level: str = "INFO", log_format: Optional[str] = None):
        """
        Configure the root logger with the contextual format.

        Args:
            level: Logging level name.
            log_format: Custom format (the default includes query_id).
        """
        root_logger = logging.getLogger()

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(log_format or DEFAULT_LOG_FORMAT))
        handler.addFilter(QueryIdFilter())

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
