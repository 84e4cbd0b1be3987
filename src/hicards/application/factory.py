"""
Review Scheduler Factory
Centralizes wiring of the scheduler with its default adapters.
"""

from hicards.application.config import AppConfig
from hicards.application.scheduler import ReviewScheduler
from hicards.domain.calendar import SystemClock
from hicards.domain.ports import EventSink, PersistenceGateway
from hicards.infrastructure.adapters.json_storage import JsonFileGateway
from hicards.infrastructure.events import NullEventSink
from hicards.infrastructure.timers import AsyncioDebounceTimer


async def build_scheduler(
    config: AppConfig,
    gateway: PersistenceGateway | None = None,
    event_sink: EventSink | None = None,
) -> ReviewScheduler:
    """
    Returns a loaded ReviewScheduler backed by the configured data file,
    unless another gateway is supplied.
    """
    scheduler = ReviewScheduler(
        gateway=gateway or JsonFileGateway(config.data_file),
        event_sink=event_sink or NullEventSink(),
        timer=AsyncioDebounceTimer(config.save_delay),
        clock=SystemClock(),
        calendar=config.calendar(),
        params=config.fsrs_parameters(),
        retention_days=config.daily_stats_retention,
    )
    await scheduler.load()
    return scheduler
