from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone


_TZ_RE = re.compile(r"^UTC([+-])(\d{1,2})$")


def parse_tz(tz_str: str) -> timezone:
    tz_str = (tz_str or "UTC").strip().upper()
    if tz_str == "UTC":
        return timezone.utc
    m = _TZ_RE.match(tz_str)
    if not m:
        raise ValueError(f"Unsupported timezone format: {tz_str} (use 'UTC' or 'UTC+8' etc.)")
    sign = 1 if m.group(1) == "+" else -1
    hours = int(m.group(2))
    return timezone(timedelta(hours=sign * hours))


def ms_to_wall_clock(ts_ms: int, tz: timezone = timezone.utc) -> datetime:
    """Epoch millis -> naive wall-clock datetime in ``tz``."""
    dt = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).astimezone(tz)
    return dt.replace(tzinfo=None)


def fmt_ts(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def fmt_short(dt: datetime) -> str:
    return dt.strftime("%m-%d %H:%M")
