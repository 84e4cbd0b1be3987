"""
Highlight feed reader.

The feed is a YAML mapping of file path to the highlights extracted from
that file::

    notes/biology.md:
      - text: What is the powerhouse of the cell?
        answer: The mitochondria
        source_id: hl-42
"""

import logging
from pathlib import Path

import yaml

from hicards.domain.errors import FeedError
from hicards.domain.models import HighlightEntry

logger = logging.getLogger(__name__)


def parse_highlight_feed(content: str) -> dict[str, list[HighlightEntry]]:
    """
    Parse feed YAML into entries grouped by file path.

    Raises:
        FeedError: If the YAML is invalid or does not have the expected shape.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise FeedError(f"Invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FeedError("Feed must be a mapping of file path to highlight list")

    feed: dict[str, list[HighlightEntry]] = {}
    for file_path, items in data.items():
        if items is None:
            feed[str(file_path)] = []
            continue
        if not isinstance(items, list):
            raise FeedError(f"Highlights for '{file_path}' must be a list")

        entries = []
        for i, item in enumerate(items):
            if not isinstance(item, dict) or "text" not in item:
                raise FeedError(f"Highlight #{i + 1} of '{file_path}' needs a 'text' key")
            source_id = item.get("source_id")
            entries.append(
                HighlightEntry(
                    text=str(item["text"]),
                    answer=str(item.get("answer") or ""),
                    file_path=str(file_path),
                    source_id=None if source_id is None else str(source_id),
                )
            )
        feed[str(file_path)] = entries
    return feed


def load_highlight_feed(path: Path | str) -> dict[str, list[HighlightEntry]]:
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FeedError(f"Cannot read feed {path}: {e}") from e

    feed = parse_highlight_feed(content)
    logger.debug(f"Loaded {sum(len(v) for v in feed.values())} highlights from {path}")
    return feed
