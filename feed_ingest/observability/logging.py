"""
Structured logging configuration using structlog.

JSON lines in production, colored console output in development. Services
log with bound key/value fields (source_id, user_id, profile_id) so a
failing feed can be traced across scheduler and worker logs.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from feed_ingest.config.settings import get_settings


def setup_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Usage:
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Job processed", source_id="rss-u1-c1-abc", items=3)
    """
    settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    # Feed fetching is chatty at INFO
    for noisy in ("httpx", "httpcore", "asyncio", "asyncpg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def bind_job_context(source_id: str, user_id: str, profile_id: str) -> None:
    """Attach the ids of the job being processed to every following log line."""
    structlog.contextvars.bind_contextvars(
        source_id=source_id,
        user_id=user_id,
        profile_id=profile_id,
    )


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
