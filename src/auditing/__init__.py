"""
Auditing Module
===============

Cross-cutting concern that stamps persisted entities with creation and
modification metadata.

Responsibilities:
- Resolve "now" and the acting user for every write
- Fill created_at/created_by on insert, updated_at/updated_by on insert and update
- Hook into the persistence layer at explicit extension points
  (before-create, before-update) instead of per-repository code

Entities opt in by inheriting ``AuditableMixin``; the hook is registered
once at startup by the composition root.
"""

__version__ = "0.0.1"
