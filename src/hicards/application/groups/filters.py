"""
Group filter language.

A filter is a comma-separated list of clauses; a card belongs to the group
when any clause matches. Each clause is parsed once into a typed predicate:

    #tag        tag in the card text/answer
    [[note]]    note link, matched against the card's file path
    notes/*.md  wildcard on the file path
    anything    substring of the file path, else of the text or answer
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache

from hicards.domain.models import Card

TAG_RE = re.compile(r"#([^\s#]+)")
LINK_RE = re.compile(r"^\[\[(.+)\]\]$")


@dataclass(frozen=True)
class CardView:
    """Read-only, lower-cased projection of a card for filter evaluation."""

    text: str
    answer: str
    file_path: str
    tags: tuple[str, ...] = field(default=())

    @classmethod
    def of(cls, card: Card) -> "CardView":
        text = (card.text or "").lower()
        answer = (card.answer or "").lower()
        tags = tuple(TAG_RE.findall(text) + TAG_RE.findall(answer))
        return cls(text=text, answer=answer, file_path=(card.file_path or "").lower(), tags=tags)


@dataclass(frozen=True)
class TagClause:
    raw: str  # The clause including its leading '#'
    tag: str

    def matches(self, view: CardView) -> bool:
        if self.raw in view.text or self.raw in view.answer:
            return True
        return any(self.tag in t for t in view.tags)


@dataclass(frozen=True)
class LinkClause:
    name: str

    def matches(self, view: CardView) -> bool:
        return bool(view.file_path) and self.name in view.file_path


@dataclass(frozen=True)
class WildcardClause:
    pattern: re.Pattern

    def matches(self, view: CardView) -> bool:
        return bool(view.file_path) and self.pattern.search(view.file_path) is not None


@dataclass(frozen=True)
class SubstringClause:
    needle: str

    def matches(self, view: CardView) -> bool:
        if view.file_path and self.needle in view.file_path:
            return True
        return self.needle in view.text or self.needle in view.answer


Clause = TagClause | LinkClause | WildcardClause | SubstringClause


def parse_clause(clause: str) -> Clause:
    """Parse one already lower-cased and trimmed clause."""
    if clause.startswith("#"):
        return TagClause(raw=clause, tag=clause[1:])

    link = LINK_RE.match(clause)
    if link:
        return LinkClause(name=link.group(1).strip())

    if "*" in clause:
        regex = ".*".join(re.escape(part) for part in clause.split("*"))
        return WildcardClause(pattern=re.compile(regex, re.IGNORECASE))

    return SubstringClause(needle=clause)


@dataclass(frozen=True)
class GroupFilter:
    clauses: tuple[Clause, ...]

    def matches(self, card: Card) -> bool:
        if not self.clauses:
            return False
        view = CardView.of(card)
        return any(clause.matches(view) for clause in self.clauses)


@lru_cache(maxsize=256)
def parse_filter(text: str) -> GroupFilter:
    """Parse a filter string. Empty clauses are dropped; an empty filter matches nothing."""
    parts = (part.strip().lower() for part in (text or "").split(","))
    return GroupFilter(clauses=tuple(parse_clause(p) for p in parts if p))
