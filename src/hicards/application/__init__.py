# Application Package
from .card_store import CardStore
from .groups import GroupFilter, GroupManager, parse_filter
from .memory_model import MemoryModel
from .quota import QuotaTracker
from .scheduler import ReviewScheduler

__all__ = [
    "CardStore",
    "GroupFilter",
    "GroupManager",
    "MemoryModel",
    "QuotaTracker",
    "ReviewScheduler",
    "parse_filter",
]
