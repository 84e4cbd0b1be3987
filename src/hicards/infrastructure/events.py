"""EventSink implementations."""

import logging
from collections.abc import Callable

from hicards.domain.ports import EventSink

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class CallbackEventSink(EventSink):
    """
    Fans ``cards_changed`` out to subscribed callables.

    A failing listener is logged and skipped; it never fails the mutation
    that triggered the notification.
    """

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def cards_changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.warning(f"cards_changed listener {listener!r} failed: {e}")


class NullEventSink(EventSink):
    def cards_changed(self) -> None:
        pass
