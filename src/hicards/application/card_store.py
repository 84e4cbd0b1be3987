"""
Card Store: owns every Card record.

Pure in-memory bookkeeping. The review scheduler is the only caller of the
mutating methods and takes care of persistence and change notification.
"""

import logging
from collections.abc import Iterable

from ulid import ULID

from hicards.domain.constants import CARD_ID_PREFIX, INITIAL_DIFFICULTY, STABILITY_FLOOR
from hicards.domain.models import Card, HighlightEntry, SyncResult

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    return f"{CARD_ID_PREFIX}{ULID()}"


class CardStore:
    def __init__(self, cards: dict[str, Card] | None = None):
        self._cards: dict[str, Card] = dict(cards or {})

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    # ---------- Lookup ----------

    def get_card(self, card_id: str) -> Card | None:
        return self._cards.get(card_id)

    def all_cards(self) -> list[Card]:
        return list(self._cards.values())

    def as_dict(self) -> dict[str, Card]:
        return dict(self._cards)

    def get_cards_by_file(self, file_path: str) -> list[Card]:
        return [c for c in self._cards.values() if c.file_path == file_path]

    def find_by_source(self, source_id: str) -> list[Card]:
        return [c for c in self._cards.values() if c.source_id == source_id]

    def get_latest_cards(self) -> list[Card]:
        """
        One card per distinct text: the most recently updated one.

        Recency is ``updated_at``; on a tie the card inserted later wins.
        Ids are never compared.
        """
        latest: dict[str, Card] = {}
        for card in self._cards.values():
            current = latest.get(card.text)
            if current is None or card.updated_at >= current.updated_at:
                latest[card.text] = card
        return list(latest.values())

    # ---------- Mutation ----------

    def add_card(
        self,
        text: str,
        answer: str,
        now: float,
        file_path: str | None = None,
        source_id: str | None = None,
    ) -> Card:
        card = Card(
            id=generate_card_id(),
            text=text,
            answer=answer,
            file_path=file_path,
            source_id=source_id,
            difficulty=INITIAL_DIFFICULTY,
            stability=STABILITY_FLOOR,
            retrievability=1.0,
            last_review=None,
            next_review=now,
            created_at=now,
            updated_at=now,
        )
        self._cards[card.id] = card
        return card

    def put_card(self, card: Card) -> None:
        """Write back a card produced by the memory model."""
        self._cards[card.id] = card

    def replace_all(self, cards: dict[str, Card]) -> None:
        self._cards = dict(cards)

    def delete_card(self, card_id: str) -> bool:
        return self._cards.pop(card_id, None) is not None

    def update_card_content(
        self,
        text: str,
        answer: str,
        file_path: str,
        now: float,
        source_id: str | None = None,
    ) -> list[Card]:
        """
        Rewrite the content of the matching cards of ``file_path``.

        With ``source_id`` the match is by that anchor alone. Without it,
        a card matches when its text equals ``text`` or its answer equals
        ``answer``; empty strings never match and never overwrite.
        Scheduling fields are preserved. If nothing matches, a new card is
        created so that repeating the call is idempotent.

        Returns:
            The updated (or newly created) cards.
        """
        if source_id is not None:
            matched = [
                c
                for c in self.get_cards_by_file(file_path)
                if c.source_id == source_id
            ]
        else:
            matched = [
                c
                for c in self.get_cards_by_file(file_path)
                if (text and c.text == text) or (answer and c.answer == answer)
            ]

        if not matched:
            logger.debug(f"No card matched in {file_path}; creating one")
            return [self.add_card(text, answer, now, file_path=file_path, source_id=source_id)]

        for card in matched:
            changed = False
            if text and card.text != text:
                card.text = text
                changed = True
            if answer and card.answer != answer:
                card.answer = answer
                changed = True
            if changed:
                card.updated_at = now
        return matched

    def delete_cards_by_content(
        self,
        file_path: str,
        text: str | None = None,
        answer: str | None = None,
    ) -> int:
        """
        Delete cards of ``file_path`` matching the given text and/or answer.

        With neither given, every card of the file is deleted.
        """
        doomed = [
            c.id
            for c in self.get_cards_by_file(file_path)
            if (text is None or c.text == text) and (answer is None or c.answer == answer)
        ]
        for card_id in doomed:
            del self._cards[card_id]
        return len(doomed)

    def reconcile_file(
        self, file_path: str, entries: Iterable[HighlightEntry], now: float
    ) -> SyncResult:
        """
        Make the cards of ``file_path`` mirror the supplied (text, answer) pairs.

        Cards whose pair is absent are deleted, absent pairs are created and
        matching cards are kept with their scheduling state.
        """
        wanted: dict[tuple[str, str], HighlightEntry] = {}
        for entry in entries:
            wanted.setdefault((entry.text, entry.answer), entry)

        kept = deleted = 0
        seen: set[tuple[str, str]] = set()
        for card in self.get_cards_by_file(file_path):
            pair = (card.text, card.answer)
            if pair in wanted:
                entry = wanted[pair]
                if entry.source_id is not None and card.source_id is None:
                    card.source_id = entry.source_id
                seen.add(pair)
                kept += 1
            else:
                del self._cards[card.id]
                deleted += 1

        created = 0
        for pair, entry in wanted.items():
            if pair not in seen:
                self.add_card(
                    entry.text, entry.answer, now, file_path=file_path, source_id=entry.source_id
                )
                created += 1

        return SyncResult(created=created, deleted=deleted, kept=kept)
