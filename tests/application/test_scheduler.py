import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from hicards.domain.constants import DEFAULT_WEIGHTS
from hicards.domain.errors import PersistenceError
from hicards.domain.models import GroupSettings, HighlightEntry, Rating
from hicards.infrastructure.adapters.memory_storage import InMemoryGateway

DAY = 86400.0


# --- Cards ---


def test_add_card_scenario(scheduler, clock):
    card = scheduler.add_card("Q1", "A1", "note.md")
    assert card.reviews == 0
    assert card.last_review is None
    assert card.stability == 0.1
    assert card.difficulty == 5
    assert card.retrievability == 1
    assert card.next_review == clock.now()


def test_card_mutations_notify_once_each(scheduler, events, timer):
    card = scheduler.add_card("Q1", "A1", "note.md")
    scheduler.update_card_content("Q1", "A2", "note.md")
    scheduler.rate_card(card.id, Rating.GOOD)
    scheduler.delete_card(card.id)
    assert len(events.calls) == 4
    assert timer.schedule_count == 4
    assert scheduler.dirty


def test_noop_deletes_do_not_notify(scheduler, events, timer):
    assert not scheduler.delete_card("card_missing")
    assert scheduler.delete_cards_by_content("nothing.md") == 0
    assert events.calls == []
    assert not timer.pending


def test_queries_leave_state_clean(scheduler, timer):
    scheduler.get_study_queue()
    scheduler.get_progress()
    assert scheduler.remaining_reviews_today() > 0
    assert scheduler.get_today_stats().review_count == 0
    assert scheduler.get_daily_stats() == []
    assert not scheduler.dirty
    assert not timer.pending


def test_lookups(scheduler):
    a = scheduler.add_card("Q1", "A1", "a.md")
    scheduler.add_card("Q2", "A2", "b.md")
    assert scheduler.get_card(a.id) is a
    assert scheduler.get_card("card_missing") is None
    assert scheduler.get_cards_by_file("a.md") == [a]
    assert len(scheduler.get_all_cards()) == 2


def test_update_card_content_idempotent(scheduler):
    first = scheduler.update_card_content("Q", "A", "n.md")
    second = scheduler.update_card_content("Q", "A", "n.md")
    assert len(scheduler.get_all_cards()) == 1
    assert first[0].id == second[0].id


def test_latest_cards_one_per_text(scheduler, clock):
    scheduler.add_card("Q1", "A1")
    clock.advance(10)
    newer = scheduler.add_card("Q1", "A1 v2")
    scheduler.add_card("Q2", "A2")
    latest = scheduler.get_latest_cards()
    assert len(latest) == 2
    assert newer in latest


# --- Reviews ---


def test_first_rate_good(scheduler, clock):
    card = scheduler.add_card("Q1", "A1", "note.md")
    rated = scheduler.rate_card(card.id, Rating.GOOD)
    assert rated.stability == 2
    assert rated.reviews == 1
    assert rated.lapses == 0
    assert rated.next_review == pytest.approx(clock.now() + 2 * DAY)
    assert scheduler.get_card(card.id) is rated


def test_again_one_day_later(scheduler, clock):
    card = scheduler.add_card("Q1", "A1", "note.md")
    scheduler.rate_card(card.id, Rating.GOOD)
    clock.advance_days(1)
    rated = scheduler.rate_card(card.id, Rating.AGAIN)
    assert rated.lapses == 1
    assert rated.stability == pytest.approx(max(0.1, 2 * DEFAULT_WEIGHTS[7]))


def test_rate_unknown_card(scheduler, events):
    assert scheduler.rate_card("card_missing", Rating.GOOD) is None
    assert scheduler.review_card("card_missing", Rating.GOOD) is None
    assert events.calls == []


def test_review_card_updates_global_stats(scheduler, clock):
    card = scheduler.add_card("Q1", "A1")
    scheduler.review_card(card.id, Rating.GOOD)
    second = scheduler.review_card(card.id, Rating.GOOD, now=clock.now() + 3 * DAY)

    stats = scheduler.get_stats()
    assert stats.total_reviews == 2
    assert stats.average_retention == pytest.approx((1.0 + second.retrievability) / 2)
    # review_card alone does not count against the quota or the streak
    assert scheduler.get_today_stats().new_cards_learned == 0
    assert stats.streak_days == 0


def test_rate_card_records_quota(scheduler, clock):
    a = scheduler.add_card("Q1", "A1")
    b = scheduler.add_card("Q2", "A2")
    scheduler.rate_card(a.id, Rating.GOOD)
    clock.advance_days(3)
    scheduler.rate_card(b.id, Rating.EASY)
    scheduler.rate_card(a.id, Rating.HARD)

    today = scheduler.get_today_stats()
    assert today.new_cards_learned == 1
    assert today.cards_reviewed == 1
    assert today.easy_count == 1
    assert today.hard_count == 1
    assert len(scheduler.get_daily_stats()) == 2


def test_streak(scheduler, clock):
    card = scheduler.add_card("Q1", "A1")
    scheduler.rate_card(card.id, Rating.GOOD)
    assert scheduler.get_stats().streak_days == 1

    clock.advance(3600)
    scheduler.rate_card(card.id, Rating.GOOD)
    assert scheduler.get_stats().streak_days == 1

    clock.advance_days(1)
    scheduler.rate_card(card.id, Rating.GOOD)
    assert scheduler.get_stats().streak_days == 2

    clock.advance_days(3)
    scheduler.rate_card(card.id, Rating.GOOD)
    stats = scheduler.get_stats()
    assert stats.streak_days == 1
    assert stats.last_review_date == clock.now()


def test_preview_ratings_does_not_mutate(scheduler):
    card = scheduler.add_card("Q1", "A1")
    outcomes = scheduler.preview_ratings(card.id)
    assert set(outcomes) == set(Rating)
    assert scheduler.get_card(card.id).reviews == 0
    assert scheduler.preview_ratings("card_missing") is None


# --- Queues ---


def test_new_card_quota_scenario(scheduler, clock):
    cards = [scheduler.add_card(f"Q{i}", "A") for i in range(25)]
    assert len(scheduler.get_new_cards()) == 20

    for card in cards[:20]:
        scheduler.rate_card(card.id, Rating.GOOD)

    assert scheduler.get_new_cards() == []
    assert not scheduler.can_learn_new_today()
    assert scheduler.remaining_new_today() == 0

    clock.advance_days(1)
    assert scheduler.can_learn_new_today()
    assert len(scheduler.get_new_cards()) == 5


def test_new_card_is_due_immediately(scheduler):
    card = scheduler.add_card("Q1", "A1", "note.md")
    assert [c.id for c in scheduler.get_due_cards()] == [card.id]
    assert scheduler.get_progress().due == 1


def test_due_cards_sorted_by_next_review(scheduler, clock):
    fresh = scheduler.add_card("New", "A")
    soon = scheduler.add_card("Soon", "A")
    later = scheduler.add_card("Later", "A")
    scheduler.rate_card(soon.id, Rating.AGAIN)
    scheduler.rate_card(later.id, Rating.GOOD)

    assert [c.id for c in scheduler.get_due_cards()] == [fresh.id]
    clock.advance_days(5)
    due = scheduler.get_due_cards()
    assert [c.id for c in due] == [fresh.id, soon.id, later.id]


def test_due_cards_capped_by_review_quota(scheduler, clock):
    scheduler.set_parameters(reviews_per_day=2)
    for i in range(4):
        card = scheduler.add_card(f"Q{i}", "A")
        scheduler.rate_card(card.id, Rating.GOOD)
    clock.advance_days(10)
    assert len(scheduler.get_due_cards()) == 2


def test_study_queue_new_first(scheduler, clock):
    reviewed = scheduler.add_card("Old", "A")
    scheduler.rate_card(reviewed.id, Rating.GOOD)
    clock.advance_days(5)
    fresh = scheduler.add_card("New", "A")
    assert [c.id for c in scheduler.get_study_queue()] == [fresh.id, reviewed.id]


@pytest.mark.asyncio
async def test_group_scoped_queues(scheduler):
    bio = await scheduler.create_card_group(
        "Biology",
        "#bio",
        settings=GroupSettings(use_global_settings=False, new_cards_per_day=1),
    )
    scheduler.add_card("Mitosis #bio", "A")
    scheduler.add_card("Meiosis #bio", "A")
    scheduler.add_card("Algebra", "A")

    assert len(scheduler.get_new_cards(bio.id)) == 1
    assert len(scheduler.get_new_cards()) == 3
    assert scheduler.get_new_cards("group_missing") == []


def test_progress(scheduler, clock):
    a = scheduler.add_card("Q1", "A")
    scheduler.add_card("Q2", "A")
    assert scheduler.get_progress().retention == 1.0

    scheduler.rate_card(a.id, Rating.GOOD)
    clock.advance_days(3)
    progress = scheduler.get_progress()
    assert progress.learned == 1
    assert progress.new_cards == 1
    assert progress.due == 2
    assert progress.retention == scheduler.get_card(a.id).retrievability


@pytest.mark.asyncio
async def test_group_progress(scheduler):
    group = await scheduler.create_card_group("Biology", "#bio")
    scheduler.add_card("Mitosis #bio", "A")
    scheduler.add_card("Algebra", "A")
    progress = scheduler.get_group_progress(group.id)
    assert progress.new_cards == 1
    assert scheduler.get_group_progress("group_missing") is None


# --- Groups ---


@pytest.mark.asyncio
async def test_create_group_and_membership(scheduler, gateway, timer):
    scheduler.add_card("Mitosis #bio", "A")
    scheduler.add_card("Algebra", "A")
    assert timer.pending

    group = await scheduler.create_card_group("Biology", "#bio")
    texts = [c.text for c in scheduler.get_cards_in_group(group)]
    assert texts == ["Mitosis #bio"]

    # saved immediately, and that save covered the pending card changes
    assert gateway.save_count == 1
    assert gateway.blob["cardGroups"][0]["name"] == "Biology"
    assert len(gateway.blob["cards"]) == 2
    assert not scheduler.dirty
    assert not timer.pending


@pytest.mark.asyncio
async def test_update_group(scheduler, clock):
    group = await scheduler.create_card_group("Biology", "#bio")
    clock.advance(60)
    assert await scheduler.update_card_group(group.id, name="Bio", filter="#bio, #cell")
    updated = scheduler.get_card_group(group.id)
    assert updated.name == "Bio"
    assert updated.filter == "#bio, #cell"
    assert updated.last_updated == clock.now()
    assert not await scheduler.update_card_group("group_missing", name="x")


@pytest.mark.asyncio
async def test_update_group_rejects_unknown_fields(scheduler):
    group = await scheduler.create_card_group("Biology", "#bio")
    with pytest.raises(ValueError):
        await scheduler.update_card_group(group.id, id="group_other")


@pytest.mark.asyncio
async def test_delete_group_keeps_cards(scheduler):
    group = await scheduler.create_card_group("Biology", "#bio")
    card = scheduler.add_card("Mitosis #bio", "A")
    assert await scheduler.delete_card_group(group.id)
    assert scheduler.get_card_groups() == []
    assert scheduler.get_card(card.id) is card
    assert not await scheduler.delete_card_group(group.id)


@pytest.mark.asyncio
async def test_group_crud_rolls_back_on_save_failure(scheduler, gateway):
    first = await scheduler.create_card_group("First", "#a")
    second = await scheduler.create_card_group("Second", "#b")
    before = list(scheduler.get_card_groups())
    gateway.fail = True

    with pytest.raises(PersistenceError) as exc_info:
        await scheduler.create_card_group("Third", "#c")
    assert isinstance(exc_info.value.__cause__, OSError)
    assert scheduler.get_card_groups() == before

    with pytest.raises(PersistenceError):
        await scheduler.update_card_group(first.id, name="Renamed")
    assert scheduler.get_card_groups() == before
    assert scheduler.get_card_group(first.id).name == "First"

    with pytest.raises(PersistenceError):
        await scheduler.delete_card_group(first.id)
    assert scheduler.get_card_groups() == before
    assert [g.id for g in scheduler.get_card_groups()] == [first.id, second.id]


# --- Persistence ---


@pytest.mark.asyncio
async def test_many_mutations_one_flush(scheduler, gateway, timer):
    for i in range(5):
        scheduler.add_card(f"Q{i}", "A")
    assert gateway.save_count == 0

    assert await timer.fire()
    assert gateway.save_count == 1
    assert len(gateway.blob["cards"]) == 5
    assert not scheduler.dirty
    assert not await timer.fire()


@pytest.mark.asyncio
async def test_flush_without_changes_is_noop(scheduler, gateway):
    assert not await scheduler.flush()
    assert gateway.save_count == 0


@pytest.mark.asyncio
async def test_failed_flush_keeps_dirty(scheduler, gateway):
    scheduler.add_card("Q", "A")
    gateway.fail = True
    with pytest.raises(OSError):
        await scheduler.flush()
    assert scheduler.dirty

    gateway.fail = False
    assert await scheduler.flush()
    assert not scheduler.dirty


@pytest.mark.asyncio
async def test_background_flush_failure_is_logged(scheduler, gateway, timer, caplog):
    scheduler.add_card("Q", "A")
    gateway.fail = True
    with caplog.at_level(logging.ERROR):
        await timer.fire()
    assert "Background save failed" in caplog.text
    assert scheduler.dirty


@pytest.mark.asyncio
async def test_close_cancels_timer_and_flushes(scheduler, gateway, timer):
    scheduler.add_card("Q", "A")
    await scheduler.close()
    assert not timer.pending
    assert gateway.save_count == 1


class SlowGateway(InMemoryGateway):
    """Saves wait until the test releases them."""

    def __init__(self):
        super().__init__()
        self.saving = asyncio.Event()
        self.release = asyncio.Event()

    async def save(self, blob):
        self.saving.set()
        await self.release.wait()
        await super().save(blob)


@pytest.mark.asyncio
async def test_card_added_during_group_save_is_flushed(events, timer, clock, calendar):
    from hicards.application.scheduler import ReviewScheduler

    gateway = SlowGateway()
    scheduler = ReviewScheduler(gateway, events, timer, clock=clock, calendar=calendar)

    task = asyncio.create_task(scheduler.create_card_group("Biology", "#bio"))
    await gateway.saving.wait()
    card = scheduler.add_card("Mitosis #bio", "A")
    gateway.release.set()
    await task

    # the group save took its snapshot before the card existed
    assert card.id not in gateway.blob["cards"]
    assert scheduler.dirty
    assert timer.pending

    assert await timer.fire()
    assert card.id in gateway.blob["cards"]
    assert not scheduler.dirty


@pytest.mark.asyncio
async def test_failed_group_save_keeps_pending_changes_dirty(scheduler, gateway, timer):
    scheduler.add_card("Q", "A")
    gateway.fail = True
    with pytest.raises(PersistenceError):
        await scheduler.create_card_group("Biology", "#bio")
    assert scheduler.dirty
    assert timer.pending

    gateway.fail = False
    assert await timer.fire()
    assert len(gateway.blob["cards"]) == 1
    assert gateway.blob["cardGroups"] == []


@pytest.mark.asyncio
async def test_load_round_trip(scheduler, gateway, events, timer, clock, calendar):
    from hicards.application.scheduler import ReviewScheduler

    card = scheduler.add_card("Q1", "A1", "n.md")
    scheduler.rate_card(card.id, Rating.GOOD)
    await scheduler.create_card_group("Biology", "#bio")
    scheduler.update_ui_state(last_group="bio")
    await scheduler.flush()

    reloaded = ReviewScheduler(gateway, events, timer, clock=clock, calendar=calendar)
    await reloaded.load()
    assert reloaded.get_card(card.id) == scheduler.get_card(card.id)
    assert reloaded.get_card_groups() == scheduler.get_card_groups()
    assert reloaded.get_stats() == scheduler.get_stats()
    assert reloaded.get_daily_stats() == scheduler.get_daily_stats()
    assert reloaded.get_ui_state() == {"last_group": "bio"}
    assert not reloaded.dirty


@pytest.mark.asyncio
async def test_load_missing_blob_starts_empty(scheduler):
    scheduler.add_card("Q", "A")
    await scheduler.load()
    assert scheduler.get_all_cards() == []
    assert not scheduler.dirty


@pytest.mark.asyncio
async def test_load_malformed_blob_starts_empty(scheduler, gateway, caplog):
    gateway.blob = {"version": "1.0", "cards": "not a mapping"}
    with caplog.at_level(logging.WARNING):
        await scheduler.load()
    assert scheduler.get_all_cards() == []
    assert "malformed" in caplog.text


@pytest.mark.asyncio
async def test_load_propagates_gateway_errors(scheduler, gateway):
    gateway.load = AsyncMock(side_effect=PersistenceError("unreadable"))
    with pytest.raises(PersistenceError):
        await scheduler.load()


@pytest.mark.asyncio
async def test_load_accepts_zero_as_never(scheduler, gateway):
    gateway.blob = {
        "version": "1.0",
        "cards": {
            "c1": {
                "id": "c1",
                "text": "Q",
                "answer": "A",
                "lastReview": 0,
                "nextReview": 0,
                "createdAt": 5,
            }
        },
        "globalStats": {"totalReviews": 0, "lastReviewDate": 0},
    }
    await scheduler.load()
    card = scheduler.get_card("c1")
    assert card.last_review is None
    assert card.updated_at == 5
    assert scheduler.get_stats().last_review_date is None


# --- Export / import ---


def test_export_import_round_trip(scheduler, clock):
    a = scheduler.add_card("Q1", "A1", "n.md")
    scheduler.add_card("Q2", "A2", "n.md")
    scheduler.rate_card(a.id, Rating.GOOD)
    clock.advance(5)
    scheduler.add_card("Q1", "A1 v2", "n.md")

    before = scheduler.get_latest_cards()
    assert scheduler.import_data(scheduler.export_data())
    assert scheduler.get_latest_cards() == before


@pytest.mark.parametrize(
    "blob",
    [
        None,
        [],
        {"cards": {}, "globalStats": {}},
        {"version": "1.0", "globalStats": {}},
        {"version": "1.0", "cards": {}},
        {"version": "1.0", "cards": [], "globalStats": {}},
        {"version": "1.0", "cards": {"c": {"id": "c"}}, "globalStats": {}},
    ],
)
def test_import_rejects_malformed(scheduler, events, blob):
    card = scheduler.add_card("Q", "A")
    events.calls.clear()
    assert not scheduler.import_data(blob)
    assert scheduler.get_all_cards() == [card]
    assert events.calls == []


def test_import_replaces_state(scheduler, events):
    scheduler.add_card("Old", "A")
    blob = {
        "version": "1.0",
        "cards": {"c1": {"id": "c1", "text": "Imported", "answer": "A"}},
        "globalStats": {"totalReviews": 7},
    }
    assert scheduler.import_data(blob)
    assert [c.text for c in scheduler.get_all_cards()] == ["Imported"]
    assert scheduler.get_stats().total_reviews == 7
    assert scheduler.dirty
    assert events.calls


def test_anki_round_trip(scheduler):
    scheduler.add_card('Say "hi"; then', "A1")
    scheduler.add_card("Q2", "A2")
    text = scheduler.export_to_anki()
    assert text.splitlines()[0] == "Front;Back;Tags"

    scheduler.import_data(
        {"version": "1.0", "cards": {}, "globalStats": {}}
    )
    assert scheduler.import_from_anki(text, file_path="anki.md") == 2
    texts = sorted(c.text for c in scheduler.get_all_cards())
    assert texts == ["Q2", 'Say "hi"; then']
    assert all(c.file_path == "anki.md" for c in scheduler.get_all_cards())


def test_export_to_anki_selected_ids(scheduler):
    a = scheduler.add_card("Q1", "A1")
    scheduler.add_card("Q2", "A2")
    text = scheduler.export_to_anki([a.id, "card_missing"])
    assert text.splitlines()[1:] == ['"Q1";"A1";']


# --- Sync, parameters, UI state ---


def test_sync_file(scheduler, events):
    keep = scheduler.add_card("Keep", "K", "n.md")
    scheduler.rate_card(keep.id, Rating.GOOD)
    scheduler.add_card("Gone", "G", "n.md")
    events.calls.clear()

    result = scheduler.sync_file(
        "n.md",
        [HighlightEntry("Keep", "K", "n.md"), HighlightEntry("Fresh", "F", "n.md")],
    )
    assert (result.created, result.deleted, result.kept) == (1, 1, 1)
    assert scheduler.get_card(keep.id).reviews == 1
    assert sorted(c.text for c in scheduler.get_cards_by_file("n.md")) == ["Fresh", "Keep"]
    assert len(events.calls) == 1


def test_parameters(scheduler):
    params = scheduler.set_parameters(new_cards_per_day=3, request_retention=0.8)
    assert params.new_cards_per_day == 3
    assert scheduler.get_parameters().request_retention == 0.8
    assert scheduler.remaining_new_today() == 3

    with pytest.raises(ValueError):
        scheduler.set_parameters(w=[1.0, 2.0])

    assert scheduler.reset_parameters().new_cards_per_day == 20
    assert scheduler.remaining_new_today() == 20


def test_ui_state(scheduler, events, timer):
    assert scheduler.get_ui_state() == {}
    state = scheduler.update_ui_state(selected_group="g1")
    assert state == {"selected_group": "g1"}
    state["selected_group"] = "mutated"
    assert scheduler.get_ui_state() == {"selected_group": "g1"}
    assert timer.pending
    assert events.calls == []


@pytest.mark.asyncio
async def test_group_mutations_notify(scheduler, events, gateway):
    group = await scheduler.create_card_group("Biology", "#bio")
    await scheduler.update_card_group(group.id, is_reversed=True)
    await scheduler.delete_card_group(group.id)
    assert len(events.calls) == 3

    gateway.fail = True
    with pytest.raises(PersistenceError):
        await scheduler.create_card_group("Chemistry", "#chem")
    assert len(events.calls) == 3
