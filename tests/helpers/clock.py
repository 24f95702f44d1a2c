"""Deterministic providers for auditing tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from src.auditing.application import IAuditorProvider, IDateTimeProvider


T0 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class ManualClock(IDateTimeProvider):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FixedAuditor(IAuditorProvider):
    def __init__(self, actor: Optional[str]):
        self.actor = actor

    def current_auditor(self) -> Optional[str]:
        return self.actor


def naive(value: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo; SQLite returns naive datetimes for timezone-aware columns."""
    return value.replace(tzinfo=None) if value is not None else None
