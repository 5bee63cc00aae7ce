"""
Timezone Service Module

This module converts an entry's recorded wall time into a second timezone,
computes the countdown to a fixed instant, and drives the live dual-zone
clock on a background scheduler.
"""

import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Optional, List, Dict, Callable, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from data.models import Countdown, ClockReading
from utils.helpers import parse_calendar_date
from utils.logger import get_logger

logger = get_logger(__name__)

CLOCK_JOB_ID = "diary-clock-tick"
CLOCK_FORMAT = "%H:%M"

_MS_PER_HOUR = 60 * 60 * 1000
_MS_PER_DAY = 24 * _MS_PER_HOUR


def _zone(name: str) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone: {name}")
        return None


def _parse_clock_time(value: str) -> Optional[time]:
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    return None


def convert_local_time(date: Optional[str], local_time: Optional[str],
                       source_zone: Optional[str] = None,
                       target_zone: Optional[str] = None) -> Optional[str]:
    """
    Render a recorded wall time in another timezone.

    The date and time are read as wall-clock values in ``source_zone`` using
    that zone's offset rules for the date, so daylight saving in either zone
    is reflected. The caller's own timezone never matters.

    Args:
        date: Calendar date, "YYYY/MM/DD" or "YYYY-MM-DD".
        local_time: Wall time, "HH:MM".
        source_zone: IANA zone the pair is expressed in (default SOURCE_TIMEZONE).
        target_zone: IANA zone to render in (default TARGET_TIMEZONE).

    Returns:
        str: "HH:MM" in the target zone, or None if an input is missing or
        does not form a valid instant.
    """
    if not date or not local_time:
        return None

    day = parse_calendar_date(date)
    clock = _parse_clock_time(local_time)
    if day is None or clock is None:
        return None

    source = _zone(source_zone or settings.SOURCE_TIMEZONE)
    target = _zone(target_zone or settings.TARGET_TIMEZONE)
    if source is None or target is None:
        return None

    instant = datetime.combine(day, clock, tzinfo=source)
    return instant.astimezone(target).strftime(CLOCK_FORMAT)


def _as_instant(value: Union[datetime, str]) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        raise ValueError("Countdown instants must be timezone-aware")
    return value


def compute_countdown(target_instant: Union[datetime, str],
                      now: Optional[datetime] = None) -> Countdown:
    """
    Whole days and hours remaining until ``target_instant``.

    Both parts come from the exact millisecond difference and are truncated
    toward zero. Once the target has passed the values go negative.

    Args:
        target_instant: Aware datetime or ISO 8601 string with offset.
        now: Aware "current" instant, defaults to the real current time.

    Returns:
        Countdown: days and hours.
    """
    target = _as_instant(target_instant)
    current = _as_instant(now) if now is not None else datetime.now(timezone.utc)

    diff_ms = (target - current) // timedelta(milliseconds=1)
    sign = -1 if diff_ms < 0 else 1
    remaining = abs(diff_ms)

    days = remaining // _MS_PER_DAY
    hours = (remaining % _MS_PER_DAY) // _MS_PER_HOUR
    return Countdown(days=sign * days, hours=sign * hours)


def tick_clock(zones: Optional[List[str]] = None,
               now: Optional[datetime] = None) -> Dict[str, str]:
    """
    Current wall time in each zone.

    Args:
        zones: IANA zone names, defaults to settings.CLOCK_ZONES.
        now: Aware instant to render, defaults to the real current time.

    Returns:
        Dict[str, str]: zone name -> "HH:MM", in the order given.
    """
    current = now or datetime.now(timezone.utc)
    times = {}
    for name in zones or settings.CLOCK_ZONES:
        zone = _zone(name)
        if zone is not None:
            times[name] = current.astimezone(zone).strftime(CLOCK_FORMAT)
    return times


def read_clock(zones: Optional[List[str]] = None,
               countdown_target: Optional[Union[datetime, str]] = None,
               now: Optional[datetime] = None) -> ClockReading:
    """Take one clock reading: zone times plus the countdown."""
    current = now or datetime.now(timezone.utc)
    target = countdown_target or settings.COUNTDOWN_TARGET
    return ClockReading(
        now=current,
        times=tick_clock(zones, current),
        countdown=compute_countdown(target, current) if target else None,
    )


class ClockTicker:
    """
    Recomputes the clock on a schedule and hands each reading to a callback.

    With ``interval`` 0 the job fires at second 0 of every minute, so the
    displayed minute flips together with real clocks; otherwise it fires
    every ``interval`` seconds. One reading is produced immediately on start.
    """

    def __init__(self, callback: Callable[[ClockReading], None],
                 zones: Optional[List[str]] = None,
                 countdown_target: Optional[Union[datetime, str]] = None,
                 interval: Optional[int] = None,
                 scheduler=None):
        """
        Args:
            callback: Receives every ClockReading.
            zones: Zones to show, defaults to settings.CLOCK_ZONES.
            countdown_target: Countdown instant, defaults to settings.COUNTDOWN_TARGET.
            interval: Seconds between ticks, 0 to align to the minute.
            scheduler: An APScheduler scheduler to share; one is created if omitted.
        """
        self.callback = callback
        self.zones = zones
        self.countdown_target = countdown_target
        self.interval = settings.CLOCK_TICK_INTERVAL if interval is None else interval
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self.last_reading: Optional[ClockReading] = None
        self.job_id = f"{CLOCK_JOB_ID}-{uuid.uuid4().hex}"
        self._job = None

    @property
    def running(self) -> bool:
        return self._job is not None

    def _trigger(self):
        if self.interval:
            return IntervalTrigger(seconds=self.interval)
        return CronTrigger(second=0)

    def tick(self) -> Optional[ClockReading]:
        """Compute a reading and deliver it to the callback."""
        reading = read_clock(self.zones, self.countdown_target)
        self.last_reading = reading
        try:
            self.callback(reading)
        except Exception as e:
            logger.error(f"Clock callback failed: {e}", exc_info=True)
        return reading

    def start(self) -> "ClockTicker":
        """Emit one reading now and schedule the rest."""
        if self.running:
            return self

        self.tick()
        self._job = self.scheduler.add_job(
            self.tick, self._trigger(), id=self.job_id, replace_existing=True
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.debug("Clock ticker started")
        return self

    def stop(self) -> None:
        """Cancel the scheduled job; safe to call more than once."""
        if not self.running:
            return

        try:
            if self._owns_scheduler:
                # A shut down scheduler cannot run jobs again
                self.scheduler.shutdown(wait=False)
                self.scheduler = BackgroundScheduler(timezone=timezone.utc)
            else:
                self._job.remove()
        finally:
            self._job = None
        logger.debug("Clock ticker stopped")

    def __enter__(self) -> "ClockTicker":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
