"""
Domain models for cards, groups and study statistics.

These are pure data structures with no I/O or external dependencies.
Timestamps are POSIX epoch seconds; ``None`` stands for "never".
"""

from dataclasses import dataclass, field
from enum import IntEnum

from .constants import (
    DEFAULT_WEIGHTS,
    INITIAL_DIFFICULTY,
    MAXIMUM_INTERVAL,
    NEW_CARDS_PER_DAY,
    REQUEST_RETENTION,
    REVIEWS_PER_DAY,
    STABILITY_FLOOR,
)


class Rating(IntEnum):
    """Button pressed after recalling a card."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


@dataclass(frozen=True)
class ReviewLog:
    """
    A single entry of a card's review history.

    Attributes:
        timestamp: When the rating was applied.
        rating: The rating given.
        elapsed_days: Days since the previous review (0 for the first one).
    """

    timestamp: float
    rating: Rating
    elapsed_days: float


@dataclass
class Card:
    """
    The unit of scheduling: one question/answer pair and its memory state.

    A card is "new" until its first rating and never becomes new again.
    """

    id: str
    text: str
    answer: str
    file_path: str | None = None
    source_id: str | None = None  # Origin-stable anchor (e.g. highlight id)

    # FSRS memory state
    difficulty: float = INITIAL_DIFFICULTY  # 1-10
    stability: float = STABILITY_FLOOR  # days
    retrievability: float = 1.0

    # Scheduling
    last_review: float | None = None
    next_review: float = 0.0
    reviews: int = 0
    lapses: int = 0
    review_history: list[ReviewLog] = field(default_factory=list)

    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_new(self) -> bool:
        return self.reviews == 0


@dataclass
class GroupSettings:
    """Optional per-group quota overrides."""

    use_global_settings: bool = True
    new_cards_per_day: int | None = None
    reviews_per_day: int | None = None


@dataclass
class CardGroup:
    """
    A named, filter-defined subset of cards.

    Membership is evaluated live from ``filter``; nothing is materialized,
    so deleting a group never touches cards.
    """

    id: str
    name: str
    filter: str
    sort_order: int = 0
    created_time: float = 0.0
    is_reversed: bool = False  # Show the answer side as the question
    settings: GroupSettings = field(default_factory=GroupSettings)
    last_updated: float | None = None


@dataclass
class DailyStats:
    """Counters for one calendar day. ``date`` is that day's local midnight."""

    date: float
    new_cards_learned: int = 0
    cards_reviewed: int = 0
    again_count: int = 0
    hard_count: int = 0
    good_count: int = 0
    easy_count: int = 0

    @property
    def review_count(self) -> int:
        return self.new_cards_learned + self.cards_reviewed


@dataclass
class GlobalStats:
    total_reviews: int = 0
    average_retention: float = 1.0  # Running mean of post-review retrievability
    streak_days: int = 0
    last_review_date: float | None = None


@dataclass(frozen=True)
class FsrsParameters:
    """Memory-model weights plus the global daily limits."""

    request_retention: float = REQUEST_RETENTION
    maximum_interval: float = MAXIMUM_INTERVAL
    w: tuple[float, ...] = DEFAULT_WEIGHTS
    new_cards_per_day: int = NEW_CARDS_PER_DAY
    reviews_per_day: int = REVIEWS_PER_DAY


@dataclass(frozen=True)
class Progress:
    due: int
    new_cards: int
    learned: int
    retention: float


@dataclass(frozen=True)
class HighlightEntry:
    """One (text, answer) pair supplied by the highlight ingestion feed."""

    text: str
    answer: str
    file_path: str
    source_id: str | None = None


@dataclass(frozen=True)
class SyncResult:
    """Outcome of reconciling one file against the ingestion feed."""

    created: int = 0
    deleted: int = 0
    kept: int = 0
