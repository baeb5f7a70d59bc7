# slotbook/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from contextvars import ContextVar

from slotbook.config.settings import get_settings

# Set per request by the correlation id middleware; "-" outside a request
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the correlation id of the request being served"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(verbose=True):
    """Configure application logging"""
    settings = get_settings()

    if verbose:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    else:
        level = logging.WARNING

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
        handlers=[handler]
    )

    if not verbose:
        # Booking and sync workers stay quiet below errors
        noisy_loggers = [
            "sqlalchemy.engine",
            "sqlalchemy.pool",
            "alembic",
            "httpx",
            "celery",
            "uvicorn.access",
        ]
        for name in noisy_loggers:
            logger = logging.getLogger(name)
            logger.setLevel(logging.ERROR)
            logger.propagate = False
