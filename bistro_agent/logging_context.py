"""Per-call correlation ID for log records.

Every dialogue policy, tool adapter and agent logs through a logger that
carries the current call's ID, so one caller's booking can be followed
from the first ask to the commit.

Usage:
    from bistro_agent.logging_context import call_context, get_call_logger

    logger = get_call_logger(__name__)
    with call_context("room-42"):
        logger.info("Asking for %s", "booking_date")  # record.call_id == "room-42"
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_call_id: ContextVar[str] = ContextVar("call_id", default="NO_CALL_ID")


def set_call_id(call_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _call_id.set(call_id)


def get_call_id() -> str:
    return _call_id.get()


@contextmanager
def call_context(call_id: str) -> Iterator[str]:
    """Bind ``call_id`` for the duration of the block, restoring the previous one."""
    token = _call_id.set(call_id)
    try:
        yield call_id
    finally:
        _call_id.reset(token)


class CallIdFilter(logging.Filter):
    """Injects call_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id = _call_id.get()  # type: ignore[attr-defined]
        return True


def get_call_logger(name: str) -> logging.Logger:
    """Return a logger with the CallIdFilter attached exactly once.

    Formatters can then include ``%(call_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CallIdFilter) for f in logger.filters):
        logger.addFilter(CallIdFilter())
    return logger
