"""
Auditing Infrastructure Layer
=============================

SQLAlchemy integration and concrete providers for the auditing module.
"""

from src.auditing.infrastructure.models import AuditableMixin
from src.auditing.infrastructure.listeners import AuditingRegistration
from src.auditing.infrastructure.providers import (
    ContextAuditorProvider,
    SystemDateTimeProvider,
    auditor_scope,
    get_current_auditor,
)

__all__ = [
    "AuditableMixin",
    "AuditingRegistration",
    "ContextAuditorProvider",
    "SystemDateTimeProvider",
    "auditor_scope",
    "get_current_auditor",
]
