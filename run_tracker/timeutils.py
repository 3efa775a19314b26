"""Clocks and wall-time helpers."""

from __future__ import annotations

import time
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def monotonic_ms() -> int:
    """Default session clock: monotonic milliseconds."""

    return int(time.monotonic() * 1000)


def tzinfo_from_name(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        ValueError: If the name is unknown or malformed.
    """

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Shanghai") from exc


def dt_from_epoch_ms(epoch_ms: int, tz_name: str) -> datetime:
    """Wall-clock datetime for a recorded geoTime, in the given timezone."""

    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=tzinfo_from_name(tz_name))


def format_hhmmss(seconds: float) -> str:
    """Whole seconds as HH:MM:SS; negative input shows as zero."""

    total = int(max(0.0, seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{sec:02d}"
