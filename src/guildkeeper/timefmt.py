"""Time formatting in a configured timezone."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIME_FORMAT = "%b %d, %Y %I:%M %p"


def load_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name such as ``Europe/Berlin``.

    Raises:
        ValueError: If the name is unknown.
    """
    if name in ("", "UTC", "Etc/UTC"):
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone {name!r}") from exc


def format_time(moment: datetime, fmt: str = DEFAULT_TIME_FORMAT, tz: tzinfo = timezone.utc) -> str:
    """Format *moment* with strftime *fmt* after converting it to *tz*.

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).strftime(fmt)
