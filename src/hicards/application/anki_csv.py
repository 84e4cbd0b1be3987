"""Anki-compatible CSV export/import (semicolon separated: Front;Back;Tags)."""

import re
from collections.abc import Iterable

from hicards.domain.models import Card

HEADER = "Front;Back;Tags"
_UNESCAPED_SEMICOLON = re.compile(r"(?<!\\);")


def escape_field(text: str) -> str:
    if not text:
        return ""
    return '"' + text.replace('"', '""').replace(";", "\\;") + '"'


def unescape_field(text: str) -> str:
    result = text.strip()
    if len(result) >= 2 and result.startswith('"') and result.endswith('"'):
        result = result[1:-1]
    return result.replace('""', '"').replace("\\;", ";")


def export_cards(cards: Iterable[Card]) -> str:
    """Render cards as Anki import text. Empty string when there is nothing to export."""
    rows = [f"{escape_field(c.text)};{escape_field(c.answer)};" for c in cards]
    if not rows:
        return ""
    return "\n".join([HEADER, *rows])


def parse_cards(data: str) -> list[tuple[str, str]]:
    """
    Parse Anki import text into (front, back) pairs.

    A first line equal to the header is skipped; lines with fewer than two
    fields are ignored.
    """
    lines = [line for line in data.splitlines() if line.strip()]
    if lines and lines[0].strip() == HEADER:
        lines = lines[1:]

    pairs = []
    for line in lines:
        parts = _UNESCAPED_SEMICOLON.split(line)
        if len(parts) < 2:
            continue
        front = unescape_field(parts[0])
        back = unescape_field(parts[1])
        if front:
            pairs.append((front, back))
    return pairs
