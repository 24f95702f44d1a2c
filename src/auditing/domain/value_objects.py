"""
Auditing Value Objects
======================

Immutable value objects describing audit metadata.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class AuditStamp:
    """
    When and by whom a write happened.

    Either part may be absent: dates are skipped when date stamping is
    disabled, and the actor is unknown outside a request or auditor scope.
    """

    at: Optional[datetime] = None
    by: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.at is None and self.by is None


@runtime_checkable
class Auditable(Protocol):
    """Anything carrying the four audit attributes."""

    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    created_by: Optional[str]
    updated_by: Optional[str]
