"""
Ports (interfaces) for the collaborators of the review scheduler.

These define the contract that infrastructure adapters must implement.
The scheduler depends on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

FlushCallback = Callable[[], Awaitable[None]]


class PersistenceGateway(ABC):
    """
    Port for loading and saving the full storage blob.

    Implementations:
        - JsonFileGateway: JSON document on disk.
        - InMemoryGateway: keeps the last saved blob in memory.
    """

    @abstractmethod
    async def load(self) -> dict[str, Any] | None:
        """
        Load the last saved blob.

        Returns:
            The blob, or None if nothing has been saved yet.
        """
        pass

    @abstractmethod
    async def save(self, blob: dict[str, Any]) -> None:
        """
        Persist the blob, replacing whatever was stored before.

        Implementations log and re-raise I/O failures; no retries.
        """
        pass


class EventSink(ABC):
    """Port for the single "cards changed" notification."""

    @abstractmethod
    def cards_changed(self) -> None:
        pass


class Clock(ABC):
    @abstractmethod
    def now(self) -> float:
        """Current time as POSIX epoch seconds."""
        pass


class SaveTimer(ABC):
    """
    Port for the debounced write.

    ``schedule`` replaces any pending callback (trailing edge); the callback
    runs once the timer's delay has passed without another ``schedule``.
    """

    @abstractmethod
    def schedule(self, callback: FlushCallback) -> None:
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass

    @property
    @abstractmethod
    def pending(self) -> bool:
        pass
