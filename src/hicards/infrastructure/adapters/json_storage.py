"""
JSON File Gateway: Infrastructure adapter for a JSON data file.

Implements PersistenceGateway by keeping the storage blob under one key of
a JSON document. Other top-level keys of the document are left alone so
the file can be shared with other settings.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from hicards.domain.constants import STORAGE_KEY
from hicards.domain.errors import PersistenceError
from hicards.domain.ports import PersistenceGateway

logger = logging.getLogger(__name__)


class JsonFileGateway(PersistenceGateway):
    """
    Reads and writes ``{"<key>": blob, ...}`` in a single JSON file.

    Writes go to a temporary sibling file that then replaces the target,
    so a crash never leaves a half-written document behind.
    """

    def __init__(self, path: Path | str, key: str = STORAGE_KEY):
        self.path = Path(path).expanduser()
        self.key = key

    async def load(self) -> dict[str, Any] | None:
        document = await asyncio.to_thread(self._read_document)
        blob = document.get(self.key)
        if blob is None:
            return None
        if not isinstance(blob, dict):
            logger.warning(f"Ignoring non-object '{self.key}' entry in {self.path}")
            return None
        return blob

    async def save(self, blob: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_blob, blob)

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {self.path}: {e}")
            raise PersistenceError(f"Cannot read data file {self.path}") from e
        if not isinstance(data, dict):
            logger.error(f"{self.path} does not contain a JSON object")
            raise PersistenceError(f"Data file {self.path} is not a JSON object")
        return data

    def _write_blob(self, blob: dict[str, Any]) -> None:
        document = self._read_document()
        document[self.key] = blob

        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            raise PersistenceError(f"Cannot write data file {self.path}") from e
