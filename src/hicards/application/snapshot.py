"""
Storage blob schema.

The blob is the JSON-compatible document exchanged with the persistence
gateway and by export/import. Keys are camelCase on the wire, so data
written by the Obsidian plugin loads unchanged (``lastReview: 0`` there
means "never").
"""

from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hicards.domain.constants import INITIAL_DIFFICULTY, STABILITY_FLOOR, STORAGE_VERSION
from hicards.domain.models import (
    Card,
    CardGroup,
    DailyStats,
    GlobalStats,
    GroupSettings,
    Rating,
    ReviewLog,
)


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ReviewLogRecord(_Wire):
    timestamp: float
    rating: int = Field(ge=1, le=4)
    elapsed_days: float = Field(default=0.0, alias="elapsed")


class CardRecord(_Wire):
    id: str
    text: str
    answer: str = ""
    file_path: str | None = None
    source_id: str | None = None
    difficulty: float = INITIAL_DIFFICULTY
    stability: float = STABILITY_FLOOR
    retrievability: float = 1.0
    last_review: float | None = None
    next_review: float = 0.0
    reviews: int = 0
    lapses: int = 0
    review_history: list[ReviewLogRecord] = Field(default_factory=list)
    created_at: float = 0.0
    updated_at: float | None = None

    @field_validator("last_review", mode="before")
    @classmethod
    def zero_means_never(cls, v: Any) -> Any:
        return None if v in (0, None) else v

    @classmethod
    def from_domain(cls, card: Card) -> "CardRecord":
        fields = asdict(card)
        fields["review_history"] = [
            ReviewLogRecord(timestamp=r.timestamp, rating=int(r.rating), elapsed_days=r.elapsed_days)
            for r in card.review_history
        ]
        return cls(**fields)

    def to_domain(self) -> Card:
        return Card(
            id=self.id,
            text=self.text,
            answer=self.answer,
            file_path=self.file_path,
            source_id=self.source_id,
            difficulty=self.difficulty,
            stability=self.stability,
            retrievability=self.retrievability,
            last_review=self.last_review,
            next_review=self.next_review,
            reviews=self.reviews,
            lapses=self.lapses,
            review_history=[
                ReviewLog(r.timestamp, Rating(r.rating), r.elapsed_days)
                for r in self.review_history
            ],
            created_at=self.created_at,
            updated_at=self.created_at if self.updated_at is None else self.updated_at,
        )


class GroupSettingsRecord(_Wire):
    use_global_settings: bool = True
    new_cards_per_day: int | None = None
    reviews_per_day: int | None = None


class CardGroupRecord(_Wire):
    id: str
    name: str
    filter: str = ""
    sort_order: int = 0
    created_time: float = 0.0
    is_reversed: bool = False
    settings: GroupSettingsRecord | None = None
    last_updated: float | None = None

    def to_domain(self) -> CardGroup:
        settings = self.settings or GroupSettingsRecord()
        return CardGroup(
            id=self.id,
            name=self.name,
            filter=self.filter,
            sort_order=self.sort_order,
            created_time=self.created_time,
            is_reversed=self.is_reversed,
            settings=GroupSettings(**settings.model_dump()),
            last_updated=self.last_updated,
        )


class DailyStatsRecord(_Wire):
    date: float
    new_cards_learned: int = 0
    cards_reviewed: int = 0
    again_count: int = 0
    hard_count: int = 0
    good_count: int = 0
    easy_count: int = 0

    def to_domain(self) -> DailyStats:
        return DailyStats(**self.model_dump())


class GlobalStatsRecord(_Wire):
    total_reviews: int = 0
    average_retention: float = 1.0
    streak_days: int = 0
    last_review_date: float | None = None

    @field_validator("last_review_date", mode="before")
    @classmethod
    def zero_means_never(cls, v: Any) -> Any:
        return None if v in (0, None) else v

    def to_domain(self) -> GlobalStats:
        return GlobalStats(**self.model_dump())


class StorageBlob(_Wire):
    """Full-state snapshot. ``version``, ``cards`` and ``globalStats`` are required."""

    version: str
    cards: dict[str, CardRecord]
    global_stats: GlobalStatsRecord
    card_groups: list[CardGroupRecord] = Field(default_factory=list)
    daily_stats: list[DailyStatsRecord] = Field(default_factory=list)
    ui_state: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(
        cls,
        cards: dict[str, Card],
        global_stats: GlobalStats,
        card_groups: list[CardGroup],
        daily_stats: list[DailyStats],
        ui_state: dict[str, Any],
        version: str = STORAGE_VERSION,
    ) -> "StorageBlob":
        return cls(
            version=version,
            cards={cid: CardRecord.from_domain(card) for cid, card in cards.items()},
            global_stats=GlobalStatsRecord(**asdict(global_stats)),
            card_groups=[CardGroupRecord(**asdict(g)) for g in card_groups],
            daily_stats=[DailyStatsRecord(**asdict(s)) for s in daily_stats],
            ui_state=dict(ui_state),
        )

    def to_blob(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def domain_cards(self) -> dict[str, Card]:
        return {record.id: record.to_domain() for record in self.cards.values()}


def parse_blob(blob: Any) -> StorageBlob:
    """
    Validate a raw blob.

    Raises:
        pydantic.ValidationError: If required keys are missing or mistyped.
    """
    return StorageBlob.model_validate(blob)
