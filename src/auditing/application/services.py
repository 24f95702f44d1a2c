"""
Auditing Application Services
=============================

The auditing hook contract and the handler that implements it.

Following SOLID principles:
- Dependency Inversion: the handler depends on clock and auditor
  abstractions, the persistence layer depends on the hook abstraction
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from src.auditing.domain import AuditStamp, Auditable


# ========== Provider Interfaces (Dependency Inversion) ==========

class IDateTimeProvider(ABC):
    """Source of the current time for audit stamps."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current, timezone-aware time."""


class IAuditorProvider(ABC):
    """Source of the acting user for audit stamps."""

    @abstractmethod
    def current_auditor(self) -> Optional[str]:
        """Return the current actor, or None when unknown."""


# ========== Hook Interface ==========

class AuditingHook(ABC):
    """
    Extension points invoked by the persistence layer.

    ``before_create`` runs once for every new auditable entity and
    ``before_update`` for every modified one, immediately before the
    corresponding row is written.
    """

    @abstractmethod
    def before_create(self, entity: Auditable) -> None:
        """Called before an entity is inserted."""

    @abstractmethod
    def before_update(self, entity: Auditable) -> None:
        """Called before an entity is updated."""


# ========== Application Services ==========

class AuditingHandler(AuditingHook):
    """
    Stamps audit fields on create and update.

    On create, created_at/created_by are filled only when the caller left
    them unset, so imported records keep their original metadata. The
    modification fields are stamped on create too unless
    ``modify_on_create`` is off. Created fields are never touched on
    update. An unknown actor leaves the actor fields as they are.
    """

    def __init__(
        self,
        date_time_provider: IDateTimeProvider,
        auditor_provider: IAuditorProvider,
        set_dates: bool = True,
        modify_on_create: bool = True
    ):
        self._date_time_provider = date_time_provider
        self._auditor_provider = auditor_provider
        self._set_dates = set_dates
        self._modify_on_create = modify_on_create

    @property
    def set_dates(self) -> bool:
        return self._set_dates

    @property
    def modify_on_create(self) -> bool:
        return self._modify_on_create

    def stamp(self) -> AuditStamp:
        """Capture the current audit stamp."""
        at = self._date_time_provider.now() if self._set_dates else None
        return AuditStamp(at=at, by=self._auditor_provider.current_auditor())

    def before_create(self, entity: Auditable) -> None:
        stamp = self.stamp()

        if stamp.at is not None and entity.created_at is None:
            entity.created_at = stamp.at
        if stamp.by is not None and entity.created_by is None:
            entity.created_by = stamp.by

        if self._modify_on_create:
            self._mark_modified(entity, stamp)

    def before_update(self, entity: Auditable) -> None:
        self._mark_modified(entity, self.stamp())

    @staticmethod
    def _mark_modified(entity: Auditable, stamp: AuditStamp) -> None:
        if stamp.at is not None:
            entity.updated_at = stamp.at
        if stamp.by is not None:
            entity.updated_by = stamp.by
