# timeruler/codec/parse.py
from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, Optional

from ..model import (
    PRIORITY_BY_KEY,
    Position,
    Priority,
    RawItem,
    Task,
    TaskDate,
    TaskLength,
    coerce_length,
    make_task_id,
)
from ..util.console import obs
from ..util.duration import parse_length
from ..util.timeparse import try_parse_hhmm
from .stages import (
    ISO_MATCH,
    clean_title,
    find_emoji_date,
    find_inline_fields,
    find_priority_marker,
    find_tags,
    split_checkbox,
    split_notes,
)

RESERVED_FIELDS = frozenset(
    {
        "scheduled",
        "date",
        "startTime",
        "endTime",
        "length",
        "duration",
        "due",
        "start",
        "created",
        "completion",
        "priority",
    }
)

_TRAILING_ISO_RE = re.compile(r"(" + ISO_MATCH + r")$")


def _field(fields: Dict[str, Any], key: str) -> Optional[str]:
    v = fields.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def parse_scheduled(
    fields: Dict[str, Any],
    text: str,
    *,
    path: str,
    has_parent: bool,
    daily_note_path: Optional[str] = None,
) -> Optional[TaskDate]:
    """Resolve `scheduled`.

    1) explicit `scheduled` field or scheduled emoji marker
    2) `date` field; else, for a top-level task without a declared date, a
       trailing ISO date in the file path (daily notes), date-only
    3) a valid `startTime` upgrades a date-only value to date-time
    """
    raw = _field(fields, "scheduled") or find_emoji_date(text, "scheduled")
    scheduled = TaskDate.parse(raw) if raw else None
    if raw and scheduled is None:
        obs("codec", f"dropping unparseable scheduled value {raw!r}")

    if scheduled is None:
        date_raw = _field(fields, "date")
        if date_raw is None and not has_parent:
            stem = path[:-3] if path.endswith(".md") else path
            in_daily = daily_note_path is None or stem.startswith(daily_note_path)
            m = _TRAILING_ISO_RE.search(stem) if in_daily else None
            if m:
                date_raw = m.group(1)
        if date_raw is None:
            return None
        parsed = TaskDate.parse(date_raw)
        if parsed is None:
            obs("codec", f"dropping unparseable date value {date_raw!r}")
            return None
        scheduled = TaskDate(parsed.day)

    hm = try_parse_hhmm(_field(fields, "startTime"))
    if hm is not None:
        scheduled = scheduled.with_time(*hm)
    return scheduled


def _structured_length(v: Any) -> Optional[TaskLength]:
    try:
        length = coerce_length(v)
    except (TypeError, ValueError):
        obs("codec", f"dropping unusable length hint {v!r}")
        return None
    return None if length is None or length.is_zero else length


def parse_length_field(fields: Dict[str, Any], scheduled: Optional[TaskDate]) -> Optional[TaskLength]:
    # hints already parsed by the indexer arrive as objects, not text
    for key in ("length", "duration"):
        v = fields.get(key)
        if v is not None and not isinstance(v, str):
            return _structured_length(v)

    raw = _field(fields, "length") or _field(fields, "duration")
    if raw:
        hm = parse_length(raw)
        if hm is not None:
            return TaskLength(hour=hm[0], minute=hm[1])
        obs("codec", f"dropping unparseable length value {raw!r}")
        return None

    end = try_parse_hhmm(_field(fields, "endTime"))
    if end is None or scheduled is None:
        return None
    start_at = scheduled.at()
    end_at = start_at.replace(hour=end[0], minute=end[1])
    diff_min = int((end_at - start_at).total_seconds() // 60)
    if diff_min <= 0:
        # end before start is malformed; treated as absent
        return None
    return TaskLength.from_minutes(diff_min)


def parse_date_key(fields: Dict[str, Any], text: str, key: str) -> Optional[dt.date]:
    raw = _field(fields, key) or find_emoji_date(text, key)
    if not raw:
        return None
    parsed = TaskDate.parse(raw)
    if parsed is None:
        obs("codec", f"dropping unparseable {key} value {raw!r}")
        return None
    return parsed.day


def parse_priority(fields: Dict[str, Any], text: str) -> int:
    raw = fields.get("priority")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        found = find_priority_marker(text)
        return Priority.DEFAULT if found is None else found
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw if Priority.LOWEST <= raw <= Priority.HIGHEST else Priority.DEFAULT
    s = str(raw).strip().lower()
    if s.isdigit():
        n = int(s)
        return n if Priority.LOWEST <= n <= Priority.HIGHEST else Priority.DEFAULT
    return PRIORITY_BY_KEY.get(s, Priority.DEFAULT)


def text_to_task(
    item: RawItem,
    *,
    daily_note_path: Optional[str] = None,
) -> Task:
    """Parse one raw item into a Task.

    Never raises for malformed annotations: they fall back to "absent".
    """
    text = item.text
    fields: Dict[str, Any] = dict(find_inline_fields(text))
    for k, v in item.fields.items():
        if v is not None:
            fields[str(k)] = v

    scheduled = parse_scheduled(
        fields,
        text,
        path=item.path,
        has_parent=item.parent is not None,
        daily_note_path=daily_note_path,
    )

    extra = {k: str(v) for k, v in fields.items() if k not in RESERVED_FIELDS}

    child_ids = tuple(make_task_id(item.path, n) for n in item.children)

    return Task(
        id=make_task_id(item.path, item.line),
        title=clean_title(text),
        path=item.path,
        heading=item.heading,
        position=item.position or Position.line(item.line),
        scheduled=scheduled,
        due=parse_date_key(fields, text, "due"),
        start=parse_date_key(fields, text, "start"),
        created=parse_date_key(fields, text, "created"),
        completion=parse_date_key(fields, text, "completion"),
        length=parse_length_field(fields, scheduled),
        priority=parse_priority(fields, text),
        tags=tuple(find_tags(text)),
        extra_fields=extra,
        children=child_ids,
        notes=split_notes(text),
        completed=item.completed,
        query_parent=item.query_parent,
    )


def parse_task_line(
    line: str,
    *,
    path: str = "",
    line_no: int = 0,
    heading: Optional[str] = None,
    daily_note_path: Optional[str] = None,
) -> Task:
    """Parse a full markdown line, checkbox included."""
    done, text = split_checkbox(line)
    item = RawItem(
        text=text,
        path=path,
        line=line_no,
        heading=heading,
        completed=bool(done),
    )
    return text_to_task(item, daily_note_path=daily_note_path)
