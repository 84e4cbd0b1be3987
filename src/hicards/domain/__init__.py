# Domain Package
from .calendar import Calendar, SystemClock
from .errors import FeedError, HiCardsError, PersistenceError
from .models import (
    Card,
    CardGroup,
    DailyStats,
    FsrsParameters,
    GlobalStats,
    GroupSettings,
    HighlightEntry,
    Progress,
    Rating,
    ReviewLog,
    SyncResult,
)
from .ports import Clock, EventSink, PersistenceGateway, SaveTimer

__all__ = [
    "Calendar",
    "Card",
    "CardGroup",
    "Clock",
    "DailyStats",
    "EventSink",
    "FeedError",
    "FsrsParameters",
    "GlobalStats",
    "GroupSettings",
    "HiCardsError",
    "HighlightEntry",
    "PersistenceError",
    "PersistenceGateway",
    "Progress",
    "Rating",
    "ReviewLog",
    "SaveTimer",
    "SyncResult",
    "SystemClock",
]
