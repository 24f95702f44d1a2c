"""
Auditing Listeners
==================

Connects an ``AuditingHook`` to SQLAlchemy's unit of work.

Each registration owns a dedicated ``Session`` subclass and listens for
``before_flush`` on that class only. Sessions built from it (the database
component passes it as ``sync_session_class``) get auditing; nothing else
in the process is affected, and disabling the registration leaves no
listener behind.
"""

from typing import Any, Optional, Type

from sqlalchemy import event
from sqlalchemy.orm import Session

from src.auditing.application import AuditingHook
from src.auditing.infrastructure.models import AuditableMixin
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class AuditingRegistration:
    """
    Registers an auditing hook at the before-create and before-update points.

    ``enable()`` and ``disable()`` are idempotent.
    """

    def __init__(self, hook: AuditingHook, base_session_class: Type[Session] = Session):
        self._hook = hook
        self._session_class: Type[Session] = type(
            "AuditedSession", (base_session_class,), {}
        )
        # Keep one bound-method object so listen/remove see the same callable
        self._listener = self._before_flush

    @property
    def hook(self) -> AuditingHook:
        return self._hook

    @property
    def session_class(self) -> Type[Session]:
        return self._session_class

    @property
    def enabled(self) -> bool:
        return event.contains(self._session_class, "before_flush", self._listener)

    def enable(self) -> None:
        if self.enabled:
            return
        event.listen(self._session_class, "before_flush", self._listener)
        logger.info("Auditing enabled", extra={"hook": type(self._hook).__name__})

    def disable(self) -> None:
        if not self.enabled:
            return
        event.remove(self._session_class, "before_flush", self._listener)
        logger.info("Auditing disabled")

    def _before_flush(
        self,
        session: Session,
        flush_context: Any,
        instances: Optional[Any]
    ) -> None:
        for instance in session.new:
            if isinstance(instance, AuditableMixin):
                self._hook.before_create(instance)

        for instance in session.dirty:
            if not isinstance(instance, AuditableMixin):
                continue
            # dirty also holds objects whose attributes were set to the same value
            if session.is_modified(instance, include_collections=False):
                self._hook.before_update(instance)
