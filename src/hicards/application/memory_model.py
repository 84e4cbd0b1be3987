"""
FSRS memory model: forgetting curve, difficulty/stability updates, intervals.

This is a pure computation module with no I/O.
"""

import math
from dataclasses import replace

from hicards.domain.constants import (
    DECAY,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    FACTOR,
    SECONDS_PER_DAY,
    STABILITY_FLOOR,
)
from hicards.domain.models import Card, FsrsParameters, Rating, ReviewLog

# Stability (days) assigned on a card's very first rating
FIRST_STABILITY = {
    Rating.AGAIN: 0.1,
    Rating.HARD: 0.5,
    Rating.GOOD: 2.0,
    Rating.EASY: 4.0,
}


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class MemoryModel:
    """
    Computes FSRS state transitions for single cards.

    Stateless apart from its parameters and side-effect free: ``review``
    returns a new Card and leaves its input untouched.
    """

    def __init__(self, params: FsrsParameters | None = None):
        self.params = params or FsrsParameters()

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """
        Probability of recall after ``elapsed_days``.

        R = (1 + FACTOR * t / S) ^ DECAY, with FACTOR = 19/81 and DECAY = -0.5.
        """
        return math.pow(1 + FACTOR * elapsed_days / stability, DECAY)

    def next_interval(self, requested_retention: float, stability: float) -> float:
        """
        Days until retrievability falls to ``requested_retention``.

        I = S / FACTOR * (r ^ (1 / DECAY) - 1), clamped to [1, maximum_interval].
        """
        interval = (stability / FACTOR) * (math.pow(requested_retention, 1 / DECAY) - 1)
        return _clamp(interval, 1.0, self.params.maximum_interval)

    def initial_difficulty(self, rating: Rating) -> float:
        w = self.params.w
        return w[3] - math.exp(w[4] * (rating - 1)) + 1

    def update_difficulty(self, old: float, rating: Rating) -> float:
        """Linear damping toward 10, then mean reversion toward the GOOD baseline."""
        w = self.params.w
        delta = -w[5] * (rating - 3)
        damped = old + delta * (10 - old) / 9
        reverted = w[6] * self.initial_difficulty(Rating.GOOD) + (1 - w[6]) * damped
        return _clamp(reverted, DIFFICULTY_MIN, DIFFICULTY_MAX)

    def update_stability(self, old: float, retrievability: float, rating: Rating) -> float:
        w = self.params.w
        if rating == Rating.AGAIN:
            multiplier = w[7]
        elif rating == Rating.HARD:
            multiplier = w[8]
        elif rating == Rating.GOOD:
            multiplier = w[9] + w[10] * (1 - retrievability)
        else:
            multiplier = w[11] + w[12] * (1 - retrievability)
        return max(STABILITY_FLOOR, old * multiplier)

    def review(self, card: Card, rating: Rating, now: float) -> Card:
        """
        Apply one rating to a card.

        Args:
            card: Current card state.
            rating: The rating given.
            now: Review timestamp.

        Returns:
            The updated card; ``card`` itself is not modified.
        """
        rating = Rating(rating)

        if card.last_review is None:
            elapsed_days = 0.0
            difficulty = _clamp(self.initial_difficulty(rating), DIFFICULTY_MIN, DIFFICULTY_MAX)
            stability = FIRST_STABILITY[rating]
            retrievability = 1.0
            interval = stability
        else:
            elapsed_days = max(0.0, (now - card.last_review) / SECONDS_PER_DAY)
            retrievability = self.retrievability(elapsed_days, card.stability)
            difficulty = self.update_difficulty(card.difficulty, rating)
            stability = self.update_stability(card.stability, retrievability, rating)
            interval = self.next_interval(self.params.request_retention, stability)

        return replace(
            card,
            difficulty=difficulty,
            stability=stability,
            retrievability=retrievability,
            last_review=now,
            next_review=now + interval * SECONDS_PER_DAY,
            reviews=card.reviews + 1,
            lapses=card.lapses + (1 if rating == Rating.AGAIN else 0),
            review_history=[*card.review_history, ReviewLog(now, rating, elapsed_days)],
        )

    def preview(self, card: Card, now: float) -> dict[Rating, Card]:
        """Outcome of every possible rating, for showing intervals on the buttons."""
        return {rating: self.review(card, rating, now) for rating in Rating}

    def is_due(self, card: Card, now: float) -> bool:
        return now >= card.next_review
