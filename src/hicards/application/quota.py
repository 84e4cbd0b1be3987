"""
Quota Tracker: per-day study counters and daily limits.

Keeps a rolling window of DailyStats (newest first) and answers "how many
more new cards / reviews today", globally or with a group's own limits.
"""

import logging

from hicards.domain.calendar import Calendar
from hicards.domain.constants import DAILY_STATS_RETENTION
from hicards.domain.models import DailyStats, FsrsParameters, Rating
from hicards.domain.ports import Clock

from .groups.manager import GroupManager

logger = logging.getLogger(__name__)

_RATING_COUNTERS = {
    Rating.AGAIN: "again_count",
    Rating.HARD: "hard_count",
    Rating.GOOD: "good_count",
    Rating.EASY: "easy_count",
}


class QuotaTracker:
    def __init__(
        self,
        params: FsrsParameters,
        groups: GroupManager,
        clock: Clock,
        calendar: Calendar,
        daily_stats: list[DailyStats] | None = None,
        retention_days: int = DAILY_STATS_RETENTION,
    ):
        self.params = params
        self._groups = groups
        self._clock = clock
        self._calendar = calendar
        self._retention_days = retention_days
        self._daily: list[DailyStats] = list(daily_stats or [])

    def history(self) -> list[DailyStats]:
        """Retained daily records, newest first."""
        return sorted(self._daily, key=lambda s: s.date, reverse=True)

    def replace_all(self, daily_stats: list[DailyStats]) -> None:
        self._daily = list(daily_stats)

    def _find_today(self) -> DailyStats | None:
        now = self._clock.now()
        for stats in self._daily:
            if self._calendar.same_day(stats.date, now):
                return stats
        return None

    def get_today_stats(self) -> DailyStats:
        """
        Today's record. A missing one is created empty but only joins the
        retained window when a review is recorded, so reads never change state.
        """
        today = self._find_today()
        if today is None:
            today = DailyStats(date=self._calendar.day_start(self._clock.now()))
        return today

    def _today_for_update(self) -> DailyStats:
        today = self._find_today()
        if today is None:
            today = DailyStats(date=self._calendar.day_start(self._clock.now()))
            self._daily.append(today)
            self._prune()
        return today

    def _prune(self) -> None:
        # Newest first, one record per day, bounded window
        by_day: dict[str, DailyStats] = {}
        for stats in sorted(self._daily, key=lambda s: s.date, reverse=True):
            by_day.setdefault(self._calendar.today_key(stats.date), stats)
        kept = list(by_day.values())[: self._retention_days]
        dropped = len(self._daily) - len(kept)
        if dropped:
            logger.debug(f"Pruned {dropped} daily stats record(s)")
        self._daily = kept

    def record_review(self, is_new: bool, rating: Rating | None = None) -> DailyStats:
        today = self._today_for_update()
        if is_new:
            today.new_cards_learned += 1
        else:
            today.cards_reviewed += 1
        if rating is not None:
            attr = _RATING_COUNTERS[Rating(rating)]
            setattr(today, attr, getattr(today, attr) + 1)
        return today

    # ---------- Limits ----------

    def new_limit(self, group_id: str | None = None) -> int:
        settings = self._group_settings(group_id)
        if settings is not None and settings.new_cards_per_day is not None:
            return settings.new_cards_per_day
        return self.params.new_cards_per_day

    def review_limit(self, group_id: str | None = None) -> int:
        settings = self._group_settings(group_id)
        if settings is not None and settings.reviews_per_day is not None:
            return settings.reviews_per_day
        return self.params.reviews_per_day

    def _group_settings(self, group_id: str | None):
        """Settings of a group that overrides the global limits, else None."""
        if not group_id:
            return None
        group = self._groups.get_group(group_id)
        if group is None or group.settings is None or group.settings.use_global_settings:
            return None
        return group.settings

    def can_learn_new_today(self, group_id: str | None = None) -> bool:
        return self.get_today_stats().new_cards_learned < self.new_limit(group_id)

    def can_review_today(self, group_id: str | None = None) -> bool:
        return self.get_today_stats().cards_reviewed < self.review_limit(group_id)

    def remaining_new_today(self, group_id: str | None = None) -> int:
        return max(0, self.new_limit(group_id) - self.get_today_stats().new_cards_learned)

    def remaining_reviews_today(self, group_id: str | None = None) -> int:
        return max(0, self.review_limit(group_id) - self.get_today_stats().cards_reviewed)
