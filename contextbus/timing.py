"""Timing constants and timestamp formatting shared across the package."""

from __future__ import annotations

from datetime import datetime, timezone

ENV_PROFILE_INTERVAL = 5.0
CPU_PROFILE_DURATION = 1.0
CPU_PROFILE_DURATION_MAX = 2 * CPU_PROFILE_DURATION

BUS_OBSERVATION_QUEUE_INTERVAL = 1.0
EVENT_METADATA_TIMEOUT = 5.0

TIME_FORMAT_RFC3339 = "2006-01-02T15:04:05Z07:00"
TIME_FORMAT_RFC3339_NANO = "2006-01-02T15:04:05.999999999Z07:00"
TIME_FORMAT_DEFAULT = TIME_FORMAT_RFC3339

PREREQUISITE_ACCOMPLISHED = -1
CONFIGURE_ID_DEFAULT = -1

_NANOS_PER_SECOND = 1_000_000_000


def _zone(moment: datetime) -> str:
    offset = moment.utcoffset()
    total = int(offset.total_seconds()) if offset is not None else 0
    if total == 0:
        return "Z"
    sign = "+" if total > 0 else "-"
    hours, minutes = divmod(abs(total) // 60, 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def format_timestamp(nanos: int, layout: str) -> str:
    """Format a Unix timestamp in nanoseconds, in local time, using an RFC 3339 layout.

    The nano layout prints the fraction with trailing zeros removed and omits
    it entirely when the timestamp falls on a whole second.
    """
    if layout not in (TIME_FORMAT_RFC3339, TIME_FORMAT_RFC3339_NANO):
        raise ValueError(f"unsupported time layout: {layout!r}")

    seconds, fraction = divmod(int(nanos), _NANOS_PER_SECOND)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone()
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")

    if layout == TIME_FORMAT_RFC3339_NANO and fraction:
        text += "." + f"{fraction:09d}".rstrip("0")

    return text + _zone(moment)