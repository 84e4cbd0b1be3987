# Infrastructure Package
from .events import CallbackEventSink, NullEventSink
from .timers import AsyncioDebounceTimer, ManualSaveTimer

__all__ = ["AsyncioDebounceTimer", "CallbackEventSink", "ManualSaveTimer", "NullEventSink"]
