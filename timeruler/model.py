# timeruler/model.py
from __future__ import annotations

import dataclasses
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .util.timeparse import split_iso


class Priority:
    LOWEST = 0
    LOW = 1
    DEFAULT = 2
    MEDIUM = 3
    HIGH = 4
    HIGHEST = 5


PRIORITY_BY_KEY: Dict[str, int] = {
    "lowest": Priority.LOWEST,
    "low": Priority.LOW,
    "default": Priority.DEFAULT,
    "medium": Priority.MEDIUM,
    "high": Priority.HIGH,
    "highest": Priority.HIGHEST,
}
KEY_BY_PRIORITY: Dict[int, str] = {v: k for k, v in PRIORITY_BY_KEY.items()}


@dataclass(frozen=True)
class TaskDate:
    """A date, optionally with a time of day.

    `hm is None` marks an all-day (date-only) value.
    """

    day: dt.date
    hm: Optional[Tuple[int, int]] = None

    @property
    def is_date(self) -> bool:
        return self.hm is None

    @classmethod
    def parse(cls, s: Any) -> Optional["TaskDate"]:
        if isinstance(s, TaskDate):
            return s
        if isinstance(s, dt.datetime):
            return cls.from_datetime(s)
        if isinstance(s, dt.date):
            return cls(s)
        if not isinstance(s, str):
            return None
        parts = split_iso(s)
        if parts is None:
            return None
        return cls(parts[0], parts[1])

    @classmethod
    def from_datetime(cls, d: dt.datetime) -> "TaskDate":
        return cls(d.date(), (d.hour, d.minute))

    def at(self) -> dt.datetime:
        hh, mm = self.hm if self.hm is not None else (0, 0)
        return dt.datetime(self.day.year, self.day.month, self.day.day, hh, mm)

    def with_time(self, hour: int, minute: int) -> "TaskDate":
        return TaskDate(self.day, (int(hour), int(minute)))

    def shifted(self, minutes: int) -> "TaskDate":
        """Shift a timed value; all-day values shift whole days only."""
        if self.hm is None:
            return TaskDate(self.day + dt.timedelta(days=int(minutes) // 1440))
        return TaskDate.from_datetime(self.at() + dt.timedelta(minutes=int(minutes)))

    def sort_key(self) -> Tuple[dt.date, int, int]:
        # all-day sorts before any timed value of the same day
        if self.hm is None:
            return (self.day, -1, -1)
        return (self.day, self.hm[0], self.hm[1])

    def date_iso(self) -> str:
        return self.day.isoformat()

    def iso(self) -> str:
        if self.hm is None:
            return self.day.isoformat()
        return f"{self.day.isoformat()}T{self.hm[0]:02d}:{self.hm[1]:02d}"

    def __str__(self) -> str:
        return self.iso()


@dataclass(frozen=True)
class TaskLength:
    hour: int = 0
    minute: int = 0

    @property
    def total_minutes(self) -> int:
        return int(self.hour) * 60 + int(self.minute)

    @property
    def is_zero(self) -> bool:
        return self.total_minutes <= 0

    @classmethod
    def from_minutes(cls, minutes: int) -> "TaskLength":
        h, m = divmod(int(minutes), 60)
        return cls(hour=h, minute=m)


@dataclass(frozen=True)
class Position:
    start_line: int = 0
    start_col: int = 0
    end_line: int = 0
    end_col: int = 0

    @classmethod
    def line(cls, n: int, width: int = 0) -> "Position":
        return cls(start_line=n, start_col=0, end_line=n, end_col=width)


@dataclass(frozen=True)
class RawItem:
    """One task line as handed over by a store's indexer.

    `fields` holds annotations the indexer already parsed; values found
    inline in `text` fill in whatever the indexer did not provide.
    """

    text: str
    path: str
    line: int
    heading: Optional[str] = None
    position: Optional[Position] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    children: Tuple[int, ...] = ()
    parent: Optional[int] = None
    completed: bool = False
    query_parent: bool = False

    def as_dict(self) -> Dict[str, Any]:
        pos = self.position or Position.line(self.line)
        return {
            "text": self.text,
            "path": self.path,
            "line": self.line,
            "heading": self.heading,
            "position": [pos.start_line, pos.start_col, pos.end_line, pos.end_col],
            "fields": {str(k): str(v) for k, v in sorted(self.fields.items())},
            "children": list(self.children),
            "parent": self.parent,
            "completed": self.completed,
            "query_parent": self.query_parent,
        }


def make_task_id(path: str, line: int) -> str:
    p = path[:-3] if path.endswith(".md") else path
    return f"{p}::{int(line)}"


def task_id_sort_key(task_id: str) -> Tuple[str, int]:
    """Order ids by path, then numerically by line."""
    path, sep, line = task_id.rpartition("::")
    if sep and line.isdigit():
        return (path, int(line))
    return (task_id, -1)


@dataclass(frozen=True)
class Task:
    id: str
    title: str = ""
    path: str = ""
    heading: Optional[str] = None
    position: Position = field(default_factory=Position)

    scheduled: Optional[TaskDate] = None
    due: Optional[dt.date] = None
    start: Optional[dt.date] = None
    created: Optional[dt.date] = None
    completion: Optional[dt.date] = None
    length: Optional[TaskLength] = None

    priority: int = Priority.DEFAULT
    tags: Tuple[str, ...] = ()
    extra_fields: Dict[str, str] = field(default_factory=dict)
    children: Tuple[str, ...] = ()
    notes: Optional[str] = None

    completed: bool = False
    query_parent: bool = False
    # Derived at load time from the other tasks' `children`; never serialized.
    parent: Optional[str] = None

    def replace(self, **changes: Any) -> "Task":
        return dataclasses.replace(self, **changes)

    @property
    def end(self) -> Optional[dt.datetime]:
        if self.scheduled is None or self.scheduled.is_date:
            return None
        mins = self.length.total_minutes if self.length else 0
        return self.scheduled.at() + dt.timedelta(minutes=mins)


_DATE_FIELDS = ("due", "start", "created", "completion")


def coerce_length(v: Any) -> Optional[TaskLength]:
    """TaskLength from a structured hint: TaskLength, {"hour","minute"}, timedelta or minutes."""
    if v is None or isinstance(v, TaskLength):
        return v
    if isinstance(v, dt.timedelta):
        return TaskLength.from_minutes(int(v.total_seconds() // 60))
    if isinstance(v, dict):
        return TaskLength(hour=int(v.get("hour", 0) or 0), minute=int(v.get("minute", 0) or 0))
    if isinstance(v, int) and not isinstance(v, bool):
        return TaskLength.from_minutes(v)
    raise ValueError(f"invalid length: {v!r}")


def _coerce_date(key: str, v: Any) -> Optional[dt.date]:
    if v is None:
        return None
    parsed = TaskDate.parse(v)
    if parsed is None:
        raise ValueError(f"invalid {key}: {v!r}")
    return parsed.day


def patch_task(task: Task, fields: Dict[str, Any]) -> Task:
    """Return `task` with a partial field set applied.

    None clears a field. Unknown keys land in extra_fields.
    Raises ValueError for values that cannot be coerced.
    """
    changes: Dict[str, Any] = {}
    extra = dict(task.extra_fields)
    for key, value in fields.items():
        if key == "scheduled":
            if value is None:
                changes[key] = None
            else:
                parsed = TaskDate.parse(value)
                if parsed is None:
                    raise ValueError(f"invalid scheduled: {value!r}")
                changes[key] = parsed
        elif key in _DATE_FIELDS:
            changes[key] = _coerce_date(key, value)
        elif key == "length":
            length = coerce_length(value)
            changes[key] = None if length is None or length.is_zero else length
        elif key == "priority":
            if isinstance(value, str):
                value = PRIORITY_BY_KEY.get(value.strip().lower(), Priority.DEFAULT)
            changes[key] = Priority.DEFAULT if value is None else int(value)
        elif key == "tags":
            changes[key] = tuple(str(x) for x in (value or ()))
        elif key == "title":
            changes[key] = str(value or "")
        elif key == "completed":
            changes[key] = bool(value)
        elif value is None:
            extra.pop(str(key), None)
        else:
            extra[str(key)] = str(value)
    changes["extra_fields"] = extra
    return task.replace(**changes)


__all__ = [
    "KEY_BY_PRIORITY",
    "PRIORITY_BY_KEY",
    "Position",
    "Priority",
    "RawItem",
    "Task",
    "TaskDate",
    "TaskLength",
    "coerce_length",
    "make_task_id",
    "patch_task",
    "task_id_sort_key",
]
