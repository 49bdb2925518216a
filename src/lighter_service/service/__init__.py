"""Service wiring — schedule, shutdown, entry point."""

from lighter_service.service.scheduler import ScheduleRunner, seconds_until_next_utc_midnight
from lighter_service.service.shutdown import ShutdownInProgress, ShutdownManager

__all__ = [
    "ScheduleRunner",
    "ShutdownInProgress",
    "ShutdownManager",
    "seconds_until_next_utc_midnight",
]
