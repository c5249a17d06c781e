"""Time sources for the engine.

All instants inside the engine are naive UTC. Offset-aware values coming
from requests are converted on the way in with ``to_utc_naive``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SystemClock:
    """Wall clock used outside of tests"""

    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """Clock frozen at a given instant; can be moved forward explicitly"""

    def __init__(self, current: datetime):
        self.current = to_utc_naive(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current
