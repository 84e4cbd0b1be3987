"""
Group Manager: holds the CardGroup list and evaluates membership.

The list primitives (insert/replace/remove by index) exist so the scheduler
can undo a mutation exactly when persisting it fails.
"""

from collections.abc import Iterable

from ulid import ULID

from hicards.domain.constants import GROUP_ID_PREFIX
from hicards.domain.models import Card, CardGroup, GroupSettings

from .filters import parse_filter


def generate_group_id() -> str:
    return f"{GROUP_ID_PREFIX}{ULID()}"


class GroupManager:
    def __init__(self, groups: list[CardGroup] | None = None):
        self._groups: list[CardGroup] = list(groups or [])

    def __len__(self) -> int:
        return len(self._groups)

    def get_groups(self) -> list[CardGroup]:
        return sorted(self._groups, key=lambda g: (g.sort_order, g.created_time))

    def raw_groups(self) -> list[CardGroup]:
        """Groups in storage order."""
        return list(self._groups)

    def get_group(self, group_id: str) -> CardGroup | None:
        return next((g for g in self._groups if g.id == group_id), None)

    def index_of(self, group_id: str) -> int:
        return next((i for i, g in enumerate(self._groups) if g.id == group_id), -1)

    def new_group(
        self,
        name: str,
        filter: str,
        now: float,
        sort_order: int | None = None,
        is_reversed: bool = False,
        settings: GroupSettings | None = None,
    ) -> CardGroup:
        """Build a group (not yet added) with a fresh id."""
        return CardGroup(
            id=generate_group_id(),
            name=name,
            filter=filter,
            sort_order=len(self._groups) if sort_order is None else sort_order,
            created_time=now,
            is_reversed=is_reversed,
            settings=settings or GroupSettings(),
        )

    def append(self, group: CardGroup) -> None:
        self._groups.append(group)

    def insert(self, index: int, group: CardGroup) -> None:
        self._groups.insert(index, group)

    def replace(self, index: int, group: CardGroup) -> CardGroup:
        previous = self._groups[index]
        self._groups[index] = group
        return previous

    def remove_at(self, index: int) -> CardGroup:
        return self._groups.pop(index)

    def replace_all(self, groups: list[CardGroup]) -> None:
        self._groups = list(groups)

    def matches(self, group: CardGroup, card: Card) -> bool:
        return parse_filter(group.filter).matches(card)

    def cards_in_group(self, group: CardGroup, cards: Iterable[Card]) -> list[Card]:
        group_filter = parse_filter(group.filter)
        return [card for card in cards if group_filter.matches(card)]

    def groups_for_card(self, card: Card) -> list[CardGroup]:
        return [g for g in self.get_groups() if self.matches(g, card)]
