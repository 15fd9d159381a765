# legality_engine/timeutils.py
"""
Time parsing and formatting helpers shared by the engine and the HTTP layer.

Internally every duration is a ``datetime.timedelta``; outputs render durations
as HH:MM strings for audit-friendly display and as float hours for machine use.
"""

from typing import Any, Optional, Union
import datetime
import re

from dateutil import parser as _du_parser

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MINUTES_PER_DAY = 24 * 60
# upper bound for any configured hours value; ten years
MAX_CONFIG_HOURS = 24 * 366 * 10

_TIME_OF_DAY = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*$')


def parse_iso(value: Any) -> datetime.datetime:
    """
    Parse an ISO-8601 instant and require an explicit offset.

    Accepts datetime objects or strings such as '2026-04-01T05:30Z' and
    '2026-04-01T11:00:00+05:30'. Naive values raise ValueError: the engine
    never guesses a zone for an instant. The result is converted to UTC.
    """
    if isinstance(value, datetime.datetime):
        dt = value
    else:
        s = str(value).strip()
        if s == "":
            raise ValueError("empty datetime string")
        dt = _du_parser.isoparse(s)
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError(f"datetime must be timezone-aware: {value!r}")
    # instants sharing a tzinfo subtract as wall-clock times
    return dt.astimezone(datetime.timezone.utc)


def get_zone(tz_name: str) -> datetime.tzinfo:
    """Resolve an IANA zone name; raises ValueError for unknown names."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"unknown time zone: {tz_name!r}") from e


def parse_time_of_day(value: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight. '24:00' is allowed so a band can
    close the day.
    """
    m = _TIME_OF_DAY.match(str(value))
    if not m:
        raise ValueError(f"time of day must be HH:MM, got {value!r}")
    hh = int(m.group(1))
    mm = int(m.group(2))
    if mm > 59 or hh > 24 or (hh == 24 and mm != 0):
        raise ValueError(f"time of day out of range: {value!r}")
    return hh * 60 + mm


def format_time_of_day(minutes: int) -> str:
    hh, mm = divmod(int(minutes), 60)
    return f"{hh:02d}:{mm:02d}"


def seconds_since_midnight(value: Union[datetime.time, datetime.datetime]) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def local_time_of_day(instant: datetime.datetime, tz_name: str) -> datetime.time:
    """Wall-clock time of ``instant`` in zone ``tz_name``."""
    return instant.astimezone(get_zone(tz_name)).time().replace(microsecond=0)


def timedelta_to_hours(td: Optional[datetime.timedelta]) -> Optional[float]:
    if td is None:
        return None
    return round(td.total_seconds() / 3600.0, 4)


def minutes_to_hhmm(minutes: Optional[int]) -> Optional[str]:
    """
    Convert integer minutes to HH:MM string.
    - Accepts negative (exceeded) -> prefix '-' then HH:MM part
    - Returns None if input is None
    """
    if minutes is None:
        return None
    m = int(minutes)
    sign = "-" if m < 0 else ""
    m = abs(m)
    hh = m // 60
    mm = m % 60
    return f"{sign}{hh:02d}:{mm:02d}"


def timedelta_to_hhmm(td: Optional[datetime.timedelta]) -> Optional[str]:
    """HH:MM rendering of a duration; seconds are truncated toward zero."""
    if td is None:
        return None
    total = td.total_seconds()
    minutes = int(total / 60)
    if minutes == 0 and total < 0:
        return "-00:00"
    return minutes_to_hhmm(minutes)
