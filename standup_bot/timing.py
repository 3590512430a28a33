"""Trigger expressions, collection-window arithmetic, and workspace-local dates.

Trigger expressions are five-field cron strings of the form ``minute hour * * *``.
Only the minute and hour are used; the remaining fields are accepted and
ignored, so every trigger fires daily.
"""

import re
from datetime import datetime, timedelta
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from standup_bot.errors import InvalidTimeError, InvalidTimezoneError

_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})$")


class TriggerTime(NamedTuple):
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def build_cron(hour: int, minute: int) -> str:
    """Build a daily trigger expression for ``hour:minute``."""
    return f"{minute} {hour} * * *"


def parse_cron(expression: str) -> Optional[TriggerTime]:
    """Extract hour and minute from a trigger expression.

    Returns None when the expression has fewer than five fields or when the
    minute/hour fields are not plain in-range integers.
    """
    parts = (expression or "").split()
    if len(parts) < 5:
        return None
    try:
        minute = int(parts[0])
        hour = int(parts[1])
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return TriggerTime(hour, minute)


def compile_time(trigger: TriggerTime, window_minutes: int) -> TriggerTime:
    """Time of day ``window_minutes`` after ``trigger``, wrapping past midnight."""
    total = trigger.hour * 60 + trigger.minute + window_minutes
    return TriggerTime((total // 60) % 24, total % 60)


def validate_timezone(tz: str) -> bool:
    """True if ``tz`` names an IANA timezone."""
    if not tz:
        return False
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def get_zone(tz: str) -> ZoneInfo:
    if not validate_timezone(tz):
        raise InvalidTimezoneError(f"Unknown timezone: {tz!r}")
    return ZoneInfo(tz)


def parse_time_of_day(text: str) -> TriggerTime:
    """Parse user input such as ``09:30``."""
    match = _TIME_OF_DAY.match((text or "").strip())
    if not match:
        raise InvalidTimeError("Invalid time format. Use HH:MM (e.g., 09:30)")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeError("Invalid time. Hour must be 0-23, minute must be 0-59")
    return TriggerTime(hour, minute)


def today_in(tz: str, now: Optional[datetime] = None) -> str:
    """Calendar date (YYYY-MM-DD) in ``tz`` at ``now`` (default: current time)."""
    zone = get_zone(tz)
    moment = now.astimezone(zone) if now else datetime.now(zone)
    return moment.strftime("%Y-%m-%d")


def next_run(expression: str, tz: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Next firing of a trigger expression as an aware datetime in ``tz``."""
    trigger = parse_cron(expression)
    if trigger is None or not validate_timezone(tz):
        return None

    zone = ZoneInfo(tz)
    local_now = now.astimezone(zone) if now else datetime.now(zone)
    candidate = local_now.replace(hour=trigger.hour, minute=trigger.minute, second=0, microsecond=0)
    if candidate <= local_now:
        candidate += timedelta(days=1)
    return candidate


def format_local(moment: datetime, tz: str) -> str:
    """Human-readable form, e.g. ``Monday, March 4, 2024 at 09:30 IST``."""
    local = moment.astimezone(ZoneInfo(tz))
    return f"{local:%A, %B} {local.day}, {local:%Y at %H:%M %Z}"
