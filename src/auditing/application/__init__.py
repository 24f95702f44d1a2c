"""
Auditing Application Layer
==========================

Contains:
- Provider interfaces: clock and current actor
- AuditingHook: the before-create / before-update contract
- AuditingHandler: the default hook implementation

This layer depends on the domain layer only.
"""

from src.auditing.application.services import (
    IDateTimeProvider,
    IAuditorProvider,
    AuditingHook,
    AuditingHandler,
)

__all__ = [
    # Provider Interfaces
    "IDateTimeProvider",
    "IAuditorProvider",
    # Hook
    "AuditingHook",
    "AuditingHandler",
]
