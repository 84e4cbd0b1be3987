"""
Day-boundary arithmetic shared by the quota tracker and the streak logic.

Every "which day is it" question goes through Calendar so the daily counters
and the streak agree on where midnight falls, including across DST changes.
"""

import time
from datetime import date, datetime, tzinfo
from datetime import time as dt_time

from .ports import Clock


class SystemClock(Clock):
    def now(self) -> float:
        return time.time()


class Calendar:
    """
    Maps timestamps to calendar days in one timezone.

    Args:
        tz: Timezone for day boundaries; None means the system local zone.
    """

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz

    def local_date(self, ts: float) -> date:
        return datetime.fromtimestamp(ts, self.tz).date()

    def day_start(self, ts: float) -> float:
        """Timestamp of local midnight on the day containing ``ts``."""
        midnight = datetime.combine(self.local_date(ts), dt_time(), tzinfo=self.tz)
        return midnight.timestamp()

    def today_key(self, ts: float) -> str:
        return self.local_date(ts).isoformat()

    def days_between(self, earlier: float, later: float) -> int:
        """Whole calendar days from ``earlier`` to ``later`` (negative if reversed)."""
        return (self.local_date(later) - self.local_date(earlier)).days

    def same_day(self, a: float, b: float) -> bool:
        return self.local_date(a) == self.local_date(b)
