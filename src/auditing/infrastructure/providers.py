"""
Auditing Providers
==================

Concrete clock and actor providers.

The current actor lives in a context variable so that each request (or
background task) sees its own value without any global mutable state.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator, Optional

from src.auditing.application import IAuditorProvider, IDateTimeProvider


_current_auditor: ContextVar[Optional[str]] = ContextVar("current_auditor", default=None)


@contextmanager
def auditor_scope(actor: Optional[str]) -> Iterator[None]:
    """
    Bind the acting user for the duration of a block.

    Usage:
        with auditor_scope("alice"):
            async with database.session() as session:
                session.add(model)
    """
    token = _current_auditor.set(actor)
    try:
        yield
    finally:
        _current_auditor.reset(token)


def get_current_auditor() -> Optional[str]:
    return _current_auditor.get()


class SystemDateTimeProvider(IDateTimeProvider):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ContextAuditorProvider(IAuditorProvider):
    """Reads the actor bound by ``auditor_scope``, falling back to a fixed one."""

    def __init__(self, fallback: Optional[str] = None):
        self._fallback = fallback

    def current_auditor(self) -> Optional[str]:
        return _current_auditor.get() or self._fallback
