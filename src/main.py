"""Application entry point helpers.

Host applications (admin tools, batch scripts) call `configure_logging`
once at startup and then build a ReconciliationSession per selection.
"""

import logging

import structlog

from src.config import settings
from src.session.context import ReconciliationSession
from src.store.base import RemoteStore


def configure_logging(level: str | None = None) -> None:
    """Route structlog through the stdlib root logger.

    Args:
        level: Log level name (defaults to settings.log_level)
    """
    log_level = getattr(logging, (level or settings.log_level).upper())
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(
                key_order=["event", "level", "timestamp"]
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def open_session(
    event_id: str, session_id: str, store: RemoteStore
) -> ReconciliationSession:
    """Create a session for a selection and load it from the store."""
    session = ReconciliationSession(event_id, session_id, store)
    await session.load()
    return session
