"""
SaveTimer implementations.

AsyncioDebounceTimer is the production timer: a trailing-edge debounce on
the running event loop. ManualSaveTimer never fires on its own; tests call
``fire()`` to run the pending flush deterministically.
"""

import asyncio

from hicards.domain.constants import SAVE_DELAY
from hicards.domain.ports import FlushCallback, SaveTimer


class AsyncioDebounceTimer(SaveTimer):
    """
    Runs the most recently scheduled callback ``delay`` seconds after the
    last ``schedule`` call. Must be used from within a running event loop.
    """

    def __init__(self, delay: float = SAVE_DELAY):
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, callback: FlushCallback) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _fire(self, callback: FlushCallback) -> None:
        self._handle = None
        task = asyncio.ensure_future(callback())
        # Keep a reference until done so the task is not garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


class ManualSaveTimer(SaveTimer):
    def __init__(self):
        self._callback: FlushCallback | None = None
        self.schedule_count = 0

    def schedule(self, callback: FlushCallback) -> None:
        self._callback = callback
        self.schedule_count += 1

    def cancel(self) -> None:
        self._callback = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    async def fire(self) -> bool:
        """Run the pending callback, if any. Returns whether one ran."""
        callback, self._callback = self._callback, None
        if callback is None:
            return False
        await callback()
        return True
