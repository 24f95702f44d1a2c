"""
Auditing Domain Layer
=====================

Pure Python audit metadata, no infrastructure dependencies.
"""

from src.auditing.domain.value_objects import AuditStamp, Auditable

__all__ = [
    "AuditStamp",
    "Auditable",
]
