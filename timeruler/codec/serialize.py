# timeruler/codec/serialize.py
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from ..model import KEY_BY_PRIORITY, Priority, Task, TaskLength
from ..util.duration import fmt_length
from ..util.timeparse import fmt_hhmm
from .stages import EMOJI_BY_KEY

DIALECT_DATAVIEW = "dataview"
DIALECT_FULL_CALENDAR = "full-calendar"
DIALECT_TASKS = "tasks"

DIALECTS = (DIALECT_DATAVIEW, DIALECT_FULL_CALENDAR, DIALECT_TASKS)


def _field(key: str, value: str) -> str:
    return f"  [{key}:: {value}]"


def _emoji(key: str, value: str = "") -> str:
    return f" {EMOJI_BY_KEY[key]} {value}".rstrip()


def _length(task: Task) -> Optional[TaskLength]:
    if task.length is None or task.length.is_zero:
        return None
    return task.length


def _length_text(length: TaskLength) -> str:
    return fmt_length(length.hour, length.minute)


def _dataview_dates(task: Task) -> List[str]:
    out: List[str] = []
    if task.scheduled:
        out.append(_field("scheduled", task.scheduled.iso()))
    if task.due:
        out.append(_field("due", task.due.isoformat()))
    length = _length(task)
    if length:
        out.append(_field("length", _length_text(length)))
    return out


def _full_calendar_dates(task: Task) -> List[str]:
    out: List[str] = []
    if task.scheduled:
        out.append(_field("date", task.scheduled.date_iso()))
        if task.scheduled.hm is not None:
            out.append(_field("startTime", fmt_hhmm(*task.scheduled.hm)))
    if task.due:
        out.append(_field("due", task.due.isoformat()))
    length = _length(task)
    # endTime needs a start; a length without scheduled is not written
    if length and task.scheduled:
        end = task.scheduled.at() + dt.timedelta(minutes=length.total_minutes)
        out.append(_field("endTime", fmt_hhmm(end.hour, end.minute)))
    return out


def _tasks_dates(task: Task) -> List[str]:
    out: List[str] = []
    length = _length(task)
    if length:
        out.append(_field("length", _length_text(length)))
    if task.scheduled:
        if task.scheduled.hm is not None:
            out.append(_field("startTime", fmt_hhmm(*task.scheduled.hm)))
        out.append(_emoji("scheduled", task.scheduled.date_iso()))
    if task.due:
        out.append(_emoji("due", task.due.isoformat()))
    return out


def _field_meta(task: Task) -> List[str]:
    out: List[str] = []
    if task.start:
        out.append(_field("start", task.start.isoformat()))
    if task.created:
        out.append(_field("created", task.created.isoformat()))
    if task.priority != Priority.DEFAULT and task.priority in KEY_BY_PRIORITY:
        out.append(_field("priority", KEY_BY_PRIORITY[task.priority]))
    if task.completion:
        out.append(_field("completion", task.completion.isoformat()))
    return out


def _emoji_meta(task: Task) -> List[str]:
    out: List[str] = []
    if task.start:
        out.append(_emoji("start", task.start.isoformat()))
    if task.created:
        out.append(_emoji("created", task.created.isoformat()))
    if task.priority != Priority.DEFAULT and task.priority in KEY_BY_PRIORITY:
        out.append(_emoji(KEY_BY_PRIORITY[task.priority]))
    if task.completion:
        out.append(_emoji("completion", task.completion.isoformat()))
    return out


def task_to_text(task: Task, dialect: str = DIALECT_DATAVIEW) -> str:
    """Render one markdown task line (without indentation)."""
    if dialect not in DIALECTS:
        raise ValueError(f"Unknown field format: {dialect!r} (expected one of {', '.join(DIALECTS)})")

    done = task.completed or task.completion is not None
    draft = f"- [{'x' if done else ' '}] {task.title.rstrip()} "
    if task.tags:
        draft += " ".join(task.tags) + " "

    for key, value in sorted(task.extra_fields.items()):
        draft += f"[{key}:: {value}]"

    if dialect == DIALECT_DATAVIEW:
        parts = _dataview_dates(task) + _field_meta(task)
    elif dialect == DIALECT_FULL_CALENDAR:
        parts = _full_calendar_dates(task) + _field_meta(task)
    else:
        parts = _tasks_dates(task) + _emoji_meta(task)

    return (draft + "".join(parts)).rstrip()
