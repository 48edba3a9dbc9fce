# timeruler/util/timeparse.py
from __future__ import annotations

import datetime as dt
import re
from typing import Optional, Tuple

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ](\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?)?$")


def parse_hhmm(s: str) -> Tuple[int, int]:
    m = _HHMM_RE.match(s.strip())
    if not m:
        raise ValueError(f"Invalid HH:MM: {s!r}")
    hh = int(m.group(1))
    mm = int(m.group(2))
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        raise ValueError(f"Invalid HH:MM: {s!r}")
    return hh, mm


def try_parse_hhmm(s: object) -> Optional[Tuple[int, int]]:
    if not isinstance(s, str):
        return None
    try:
        return parse_hhmm(s)
    except ValueError:
        return None


def parse_date_yyyy_mm_dd(s: str) -> dt.date:
    return dt.datetime.strptime(s, "%Y-%m-%d").date()


def split_iso(s: str) -> Optional[Tuple[dt.date, Optional[Tuple[int, int]]]]:
    """Split `YYYY-MM-DD` / `YYYY-MM-DDTHH:MM[:SS]` into (date, (hour, minute) or None).

    Returns None for anything else, including impossible calendar values.
    """
    m = _ISO_RE.match(s.strip())
    if not m:
        return None
    try:
        day = dt.date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None
    if m.group(4) is None:
        return day, None
    hh = int(m.group(4))
    mm = int(m.group(5))
    if not (0 <= hh <= 23 and 0 <= mm <= 59):
        return None
    return day, (hh, mm)


def fmt_hhmm(hour: int, minute: int) -> str:
    return f"{int(hour):02d}:{int(minute):02d}"


def fmt_delta(minutes: int) -> str:
    """90 -> '1h30m', -45 -> '-0h45m'."""
    sign = "-" if minutes < 0 else ""
    h, m = divmod(abs(int(minutes)), 60)
    return f"{sign}{h}h{m}m"
