# timeruler/util/duration.py
from __future__ import annotations

import re
from typing import Optional, Tuple

# ISO-8601 durations: PT10M, PT1H30M, etc.
_ISO_RE = re.compile(r"^P(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)$", re.IGNORECASE)
# Human forms: 1h30m, 1h 30m, 45m, 2 hours, 1 hr 5 min
_HUMAN_RE = re.compile(
    r"^(?:(\d+)\s*h(?:ours?|rs?)?)?\s*,?\s*(?:(\d+)\s*m(?:in(?:ute)?s?)?)?$",
    re.IGNORECASE,
)
_CLOCK_RE = re.compile(r"^(\d+):(\d{2})$")


def parse_length(s: str | None) -> Optional[Tuple[int, int]]:
    """Parse a length annotation into (hours, minutes), unnormalized.

    Returns None when the value is empty, malformed, or zero.
    """
    if not s:
        return None
    ss = str(s).strip()
    if not ss:
        return None

    m = _ISO_RE.match(ss)
    if m and any(m.groups()):
        h = int(m.group(1) or 0)
        mn = int(m.group(2) or 0)
        if int(m.group(3) or 0) >= 30:
            mn += 1
        return (h, mn) if h or mn else None

    m = _CLOCK_RE.match(ss)
    if m:
        h, mn = int(m.group(1)), int(m.group(2))
        return (h, mn) if h or mn else None

    m = _HUMAN_RE.match(ss)
    if m and (m.group(1) or m.group(2)):
        h = int(m.group(1) or 0)
        mn = int(m.group(2) or 0)
        return (h, mn) if h or mn else None

    return None


def fmt_length(hour: int, minute: int) -> str:
    out = ""
    if hour:
        out += f"{hour}h"
    if minute:
        out += f"{minute}m"
    return out
