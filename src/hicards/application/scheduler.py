"""
Review Scheduler: Application layer orchestrator.

Composes the memory model, card store, quota tracker and group manager,
owns GlobalStats and the opaque UI state, and mediates every write:
mutations mark the state dirty, ask the save timer for a debounced flush
and emit a single "cards changed" notification.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from pydantic import ValidationError

from hicards.domain.calendar import Calendar, SystemClock
from hicards.domain.constants import DAILY_STATS_RETENTION, MIN_WEIGHTS
from hicards.domain.errors import PersistenceError
from hicards.domain.models import (
    Card,
    CardGroup,
    DailyStats,
    FsrsParameters,
    GlobalStats,
    GroupSettings,
    HighlightEntry,
    Progress,
    Rating,
    SyncResult,
)
from hicards.domain.ports import Clock, EventSink, PersistenceGateway, SaveTimer

from . import anki_csv
from .card_store import CardStore
from .groups.manager import GroupManager
from .memory_model import MemoryModel
from .quota import QuotaTracker
from .snapshot import StorageBlob, parse_blob

logger = logging.getLogger(__name__)

_GROUP_FIELDS = {"name", "filter", "sort_order", "is_reversed", "settings"}


class ReviewScheduler:
    """
    Public façade of the scheduling engine.

    Reads and card mutations are synchronous; anything touching the
    persistence gateway is async. Depends only on the ports in
    ``hicards.domain.ports``.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        event_sink: EventSink,
        timer: SaveTimer,
        clock: Clock | None = None,
        calendar: Calendar | None = None,
        params: FsrsParameters | None = None,
        retention_days: int = DAILY_STATS_RETENTION,
    ):
        """
        Args:
            gateway: Where the storage blob is loaded from and saved to.
            event_sink: Receives ``cards_changed`` after card and group mutations.
            timer: Debounces card writes.
            clock: Time source; the system clock if not provided.
            calendar: Day boundaries; system local time if not provided.
            params: FSRS weights and global daily limits.
            retention_days: Number of DailyStats records kept.
        """
        self._gateway = gateway
        self._events = event_sink
        self._timer = timer
        self._clock = clock or SystemClock()
        self._calendar = calendar or Calendar()

        params = params or FsrsParameters()
        self._model = MemoryModel(params)
        self._store = CardStore()
        self._groups = GroupManager()
        self._quota = QuotaTracker(
            params, self._groups, self._clock, self._calendar, retention_days=retention_days
        )
        self._global_stats = GlobalStats()
        self._ui_state: dict[str, Any] = {}
        self._dirty = False

    # ---------- Lifecycle ----------

    @property
    def dirty(self) -> bool:
        return self._dirty

    async def load(self) -> None:
        """
        Replace the in-memory state with the gateway's blob.

        A missing or malformed blob leaves an empty state (logged); gateway
        failures propagate.
        """
        raw = await self._gateway.load()
        if raw is None:
            logger.info("No saved data found, starting with an empty collection")
            self._reset_state()
            return

        try:
            blob = parse_blob(raw)
        except ValidationError as e:
            logger.warning(f"Saved data is malformed ({e.error_count()} errors), starting empty")
            self._reset_state()
            return

        self._apply(blob)
        self._dirty = False
        logger.info(f"Loaded {len(self._store)} cards and {len(self._groups)} groups")

    async def flush(self) -> bool:
        """
        Write the current state if it changed since the last save.

        Returns:
            True if a save happened, False if there was nothing to write.

        Raises:
            Whatever the gateway raised; the state stays dirty in that case.
        """
        if not self._dirty:
            return False

        blob = self._snapshot()
        self._dirty = False
        try:
            await self._gateway.save(blob)
        except Exception:
            self._dirty = True
            raise
        logger.debug(f"Flushed {len(blob['cards'])} cards")
        return True

    async def close(self) -> None:
        self._timer.cancel()
        await self.flush()

    async def _flush_in_background(self) -> None:
        try:
            await self.flush()
        except Exception as e:
            logger.error(f"Background save failed: {e}")

    async def _save_now(self) -> None:
        was_dirty = self._dirty
        blob = self._snapshot()
        self._dirty = False
        try:
            await self._gateway.save(blob)
        except Exception:
            self._dirty = self._dirty or was_dirty
            raise
        # Changes made during the save keep their pending flush
        if not self._dirty:
            self._timer.cancel()

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._timer.schedule(self._flush_in_background)

    def _changed(self) -> None:
        self._mark_dirty()
        self._events.cards_changed()

    def _snapshot(self) -> dict[str, Any]:
        return StorageBlob.from_domain(
            cards=self._store.as_dict(),
            global_stats=self._global_stats,
            card_groups=self._groups.raw_groups(),
            daily_stats=self._quota.history(),
            ui_state=self._ui_state,
        ).to_blob()

    def _apply(self, blob: StorageBlob) -> None:
        self._store.replace_all(blob.domain_cards())
        self._groups.replace_all([g.to_domain() for g in blob.card_groups])
        self._quota.replace_all([s.to_domain() for s in blob.daily_stats])
        self._global_stats = blob.global_stats.to_domain()
        self._ui_state = dict(blob.ui_state)

    def _reset_state(self) -> None:
        self._store.replace_all({})
        self._groups.replace_all([])
        self._quota.replace_all([])
        self._global_stats = GlobalStats()
        self._ui_state = {}
        self._dirty = False

    # ---------- Cards ----------

    def add_card(
        self,
        text: str,
        answer: str,
        file_path: str | None = None,
        source_id: str | None = None,
    ) -> Card:
        card = self._store.add_card(
            text, answer, self._clock.now(), file_path=file_path, source_id=source_id
        )
        self._changed()
        return card

    def update_card_content(
        self, text: str, answer: str, file_path: str, source_id: str | None = None
    ) -> list[Card]:
        cards = self._store.update_card_content(
            text, answer, file_path, self._clock.now(), source_id=source_id
        )
        self._changed()
        return cards

    def delete_cards_by_content(
        self, file_path: str, text: str | None = None, answer: str | None = None
    ) -> int:
        deleted = self._store.delete_cards_by_content(file_path, text=text, answer=answer)
        if deleted:
            self._changed()
        return deleted

    def delete_card(self, card_id: str) -> bool:
        if not self._store.delete_card(card_id):
            return False
        self._changed()
        return True

    def get_card(self, card_id: str) -> Card | None:
        return self._store.get_card(card_id)

    def get_cards_by_file(self, file_path: str) -> list[Card]:
        return self._store.get_cards_by_file(file_path)

    def get_latest_cards(self) -> list[Card]:
        return self._store.get_latest_cards()

    def get_all_cards(self) -> list[Card]:
        return self._store.all_cards()

    def sync_file(self, file_path: str, entries: Iterable[HighlightEntry]) -> SyncResult:
        """Make the cards of ``file_path`` mirror the feed's (text, answer) pairs."""
        result = self._store.reconcile_file(file_path, entries, self._clock.now())
        if result.created or result.deleted:
            self._changed()
        elif result.kept:
            # source ids may have been backfilled
            self._mark_dirty()
        logger.debug(
            f"Synced {file_path}: {result.created} created, "
            f"{result.deleted} deleted, {result.kept} kept"
        )
        return result

    # ---------- Reviews ----------

    def _review(self, card_id: str, rating: Rating, now: float) -> Card | None:
        card = self._store.get_card(card_id)
        if card is None:
            return None

        updated = self._model.review(card, rating, now)
        self._store.put_card(updated)

        stats = self._global_stats
        stats.total_reviews += 1
        n = stats.total_reviews
        stats.average_retention = (stats.average_retention * (n - 1) + updated.retrievability) / n
        return updated

    def review_card(self, card_id: str, rating: Rating, now: float | None = None) -> Card | None:
        """
        Apply a rating to a card and update the global review statistics.

        Returns:
            The updated card, or None if the id is unknown.
        """
        updated = self._review(card_id, Rating(rating), self._clock.now() if now is None else now)
        if updated is not None:
            self._changed()
        return updated

    def rate_card(self, card_id: str, rating: Rating) -> Card | None:
        """
        Record a study answer: review the card, count it against today's
        quota and advance the streak.
        """
        card = self._store.get_card(card_id)
        if card is None:
            return None

        rating = Rating(rating)
        now = self._clock.now()
        was_new = card.is_new
        updated = self._review(card_id, rating, now)
        self._quota.record_review(was_new, rating)
        self._update_streak(now)
        self._changed()
        return updated

    def _update_streak(self, now: float) -> None:
        stats = self._global_stats
        if stats.last_review_date is None:
            stats.streak_days = 1
        else:
            gap = self._calendar.days_between(stats.last_review_date, now)
            if gap == 1:
                stats.streak_days += 1
            elif gap != 0:
                stats.streak_days = 1
        stats.last_review_date = now

    def preview_ratings(self, card_id: str) -> dict[Rating, Card] | None:
        card = self._store.get_card(card_id)
        if card is None:
            return None
        return self._model.preview(card, self._clock.now())

    # ---------- Queues ----------

    def _candidate_cards(self, group_id: str | None) -> list[Card] | None:
        if not group_id:
            return self._store.all_cards()
        group = self._groups.get_group(group_id)
        if group is None:
            return None
        return self.get_cards_in_group(group)

    def _due_sorted(self, cards: list[Card]) -> list[Card]:
        now = self._clock.now()
        return sorted(
            (c for c in cards if self._model.is_due(c, now)),
            key=lambda c: c.next_review,
        )

    def get_due_cards(self, group_id: str | None = None) -> list[Card]:
        """Cards that are due, soonest first, capped by today's review quota."""
        cards = self._candidate_cards(group_id)
        if not cards:
            return []
        return self._due_sorted(cards)[: self._quota.remaining_reviews_today(group_id)]

    def get_new_cards(self, group_id: str | None = None) -> list[Card]:
        cards = self._candidate_cards(group_id)
        if not cards:
            return []
        new = [c for c in cards if c.is_new]
        return new[: self._quota.remaining_new_today(group_id)]

    def get_study_queue(self, group_id: str | None = None) -> list[Card]:
        """New cards within today's new quota, then reviewed cards that are due."""
        cards = self._candidate_cards(group_id)
        if not cards:
            return []
        reviews = [c for c in self._due_sorted(cards) if not c.is_new]
        return (
            self.get_new_cards(group_id)
            + reviews[: self._quota.remaining_reviews_today(group_id)]
        )

    def _progress(self, cards: list[Card]) -> Progress:
        now = self._clock.now()
        learned = [c for c in cards if not c.is_new]
        retention = (
            sum(c.retrievability for c in learned) / len(learned) if learned else 1.0
        )
        return Progress(
            due=sum(1 for c in cards if self._model.is_due(c, now)),
            new_cards=len(cards) - len(learned),
            learned=len(learned),
            retention=retention,
        )

    def get_progress(self) -> Progress:
        return self._progress(self._store.get_latest_cards())

    def get_group_progress(self, group_id: str) -> Progress | None:
        group = self._groups.get_group(group_id)
        if group is None:
            return None
        return self._progress(self.get_cards_in_group(group))

    # ---------- Groups ----------

    def get_card_groups(self) -> list[CardGroup]:
        return self._groups.get_groups()

    def get_card_group(self, group_id: str) -> CardGroup | None:
        return self._groups.get_group(group_id)

    def get_cards_in_group(self, group: CardGroup) -> list[Card]:
        return self._groups.cards_in_group(group, self._store.get_latest_cards())

    async def create_card_group(
        self,
        name: str,
        filter: str,
        sort_order: int | None = None,
        is_reversed: bool = False,
        settings: GroupSettings | None = None,
    ) -> CardGroup:
        """
        Create a group and save it right away.

        Raises:
            PersistenceError: If the save failed; the group is not kept.
        """
        group = self._groups.new_group(
            name,
            filter,
            self._clock.now(),
            sort_order=sort_order,
            is_reversed=is_reversed,
            settings=settings,
        )
        self._groups.append(group)
        try:
            await self._save_now()
        except Exception as e:
            self._groups.remove_at(self._groups.index_of(group.id))
            raise PersistenceError(f"Could not save new group '{name}'") from e
        self._events.cards_changed()
        logger.info(f"Created group {group.id} ({name})")
        return group

    async def update_card_group(self, group_id: str, **changes: Any) -> bool:
        """
        Update the given group fields and save right away.

        Returns:
            False if no such group exists.

        Raises:
            ValueError: On a field that cannot be changed.
            PersistenceError: If the save failed; the previous group is restored.
        """
        unknown = set(changes) - _GROUP_FIELDS
        if unknown:
            raise ValueError(f"Cannot update group field(s): {', '.join(sorted(unknown))}")

        index = self._groups.index_of(group_id)
        if index < 0:
            return False

        current = self._groups.get_group(group_id)
        updated = replace(current, **changes, last_updated=self._clock.now())
        previous = self._groups.replace(index, updated)
        try:
            await self._save_now()
        except Exception as e:
            self._groups.replace(index, previous)
            raise PersistenceError(f"Could not save group {group_id}") from e
        self._events.cards_changed()
        return True

    async def delete_card_group(self, group_id: str) -> bool:
        """
        Delete a group (its cards are untouched) and save right away.

        Raises:
            PersistenceError: If the save failed; the group is put back in place.
        """
        index = self._groups.index_of(group_id)
        if index < 0:
            return False

        removed = self._groups.remove_at(index)
        try:
            await self._save_now()
        except Exception as e:
            self._groups.insert(index, removed)
            raise PersistenceError(f"Could not delete group {group_id}") from e
        self._events.cards_changed()
        logger.info(f"Deleted group {group_id}")
        return True

    # ---------- Quota ----------

    def can_learn_new_today(self, group_id: str | None = None) -> bool:
        return self._quota.can_learn_new_today(group_id)

    def can_review_today(self, group_id: str | None = None) -> bool:
        return self._quota.can_review_today(group_id)

    def remaining_new_today(self, group_id: str | None = None) -> int:
        return self._quota.remaining_new_today(group_id)

    def remaining_reviews_today(self, group_id: str | None = None) -> int:
        return self._quota.remaining_reviews_today(group_id)

    def get_today_stats(self) -> DailyStats:
        return self._quota.get_today_stats()

    def get_daily_stats(self) -> list[DailyStats]:
        return self._quota.history()

    # ---------- Stats, parameters, UI state ----------

    def get_stats(self) -> GlobalStats:
        return replace(self._global_stats)

    def get_parameters(self) -> FsrsParameters:
        return self._model.params

    def set_parameters(self, **changes: Any) -> FsrsParameters:
        """
        Change memory-model parameters and/or global daily limits.

        Raises:
            ValueError: If the weight vector is too short.
        """
        if "w" in changes:
            changes["w"] = tuple(changes["w"])
            if len(changes["w"]) < MIN_WEIGHTS:
                raise ValueError(f"Expected at least {MIN_WEIGHTS} weights, got {len(changes['w'])}")
        return self._use_parameters(replace(self._model.params, **changes))

    def reset_parameters(self) -> FsrsParameters:
        return self._use_parameters(FsrsParameters())

    def _use_parameters(self, params: FsrsParameters) -> FsrsParameters:
        self._model = MemoryModel(params)
        self._quota.params = params
        return params

    def get_ui_state(self) -> dict[str, Any]:
        return dict(self._ui_state)

    def update_ui_state(self, **changes: Any) -> dict[str, Any]:
        self._ui_state.update(changes)
        self._mark_dirty()
        return dict(self._ui_state)

    # ---------- Export / import ----------

    def export_data(self) -> dict[str, Any]:
        return self._snapshot()

    def import_data(self, blob: Any) -> bool:
        """
        Replace the whole state with an exported blob.

        Returns:
            False (state untouched) if the blob is malformed.
        """
        try:
            parsed = parse_blob(blob)
        except ValidationError as e:
            logger.warning(f"Rejected import: {e.error_count()} validation error(s)")
            return False

        self._apply(parsed)
        self._changed()
        logger.info(f"Imported {len(self._store)} cards and {len(self._groups)} groups")
        return True

    def export_to_anki(self, card_ids: Iterable[str] | None = None) -> str:
        if card_ids is None:
            cards = self._store.get_latest_cards()
        else:
            cards = [c for c in (self._store.get_card(cid) for cid in card_ids) if c is not None]
        return anki_csv.export_cards(cards)

    def import_from_anki(self, data: str, file_path: str | None = None) -> int:
        """Create a new card per Anki row. Returns the number of cards created."""
        pairs = anki_csv.parse_cards(data)
        now = self._clock.now()
        for front, back in pairs:
            self._store.add_card(front, back, now, file_path=file_path)
        if pairs:
            self._changed()
        logger.info(f"Imported {len(pairs)} card(s) from Anki text")
        return len(pairs)
