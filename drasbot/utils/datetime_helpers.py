"""
Date/time helpers

All timestamps handled by drasbot are timezone-aware UTC. Components that
reason about expiry take a `Clock` (a zero-argument callable returning the
current time) so tests can move time forward without sleeping.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(timezone.utc)
