"""In-memory PersistenceGateway, for tests and throwaway sessions."""

import copy
from typing import Any

from hicards.domain.ports import PersistenceGateway


class InMemoryGateway(PersistenceGateway):
    def __init__(self, blob: dict[str, Any] | None = None):
        self.blob = copy.deepcopy(blob)
        self.save_count = 0

    async def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self.blob)

    async def save(self, blob: dict[str, Any]) -> None:
        self.blob = copy.deepcopy(blob)
        self.save_count += 1
