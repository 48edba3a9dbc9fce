# timeruler/graph.py
from __future__ import annotations

import datetime as dt
import hashlib
import json
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

try:
    import orjson  # type: ignore
except Exception:  # pragma: no cover
    orjson = None  # type: ignore

from .codec import text_to_task
from .codec.stages import find_emoji_date
from .config import Settings
from .model import RawItem, Task, TaskDate
from .util.console import obs


class TaskGraph:
    """id -> Task mapping with parent links resolved from declared children.

    Read-only after load: patches go to the store and come back through the
    next reload as a new graph.
    """

    def __init__(self, tasks: Dict[str, Task]):
        self._tasks = tasks

    @classmethod
    def load(cls, raw_items: Iterable[RawItem], *, daily_note_path: Optional[str] = None) -> "TaskGraph":
        tasks: Dict[str, Task] = {}
        for item in raw_items:
            t = text_to_task(item, daily_note_path=daily_note_path)
            tasks[t.id] = t
        return cls.from_tasks(tasks.values())

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskGraph":
        by_id: Dict[str, Task] = {t.id: t for t in tasks}
        parents: Dict[str, str] = {}
        for t in by_id.values():
            for child in t.children:
                # dangling child references are ignored
                if child in by_id and child != t.id:
                    parents[child] = t.id
        for child, parent in parents.items():
            by_id[child] = by_id[child].replace(parent=parent)
        return cls(by_id)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        t = self._tasks.get(task_id)
        if t is None:
            raise KeyError(task_id)
        return t

    @property
    def ids(self) -> List[str]:
        return list(self._tasks.keys())

    def paths(self) -> List[str]:
        return sorted({t.path for t in self._tasks.values() if t.path})

    def descendants(self, task_id: str) -> Set[str]:
        """All ids reachable through `children` (the root itself excluded).

        Cycles in the source data end the walk instead of recursing forever.
        """
        out: Set[str] = set()
        root = self._tasks.get(task_id)
        if root is None:
            return out
        visited: Set[str] = {task_id}
        stack: List[str] = list(root.children)
        while stack:
            cid = stack.pop()
            if cid in visited:
                continue
            visited.add(cid)
            child = self._tasks.get(cid)
            if child is None:
                continue
            out.add(cid)
            stack.extend(child.children)
        return out

    def ancestor_is_query_parent(self, task_id: str) -> bool:
        """True when some ancestor of the task is a query parent.

        The walk stops at the first query-parent ancestor found.
        """
        seen: Set[str] = {task_id}
        t = self._tasks.get(task_id)
        parent_id = t.parent if t else None
        while parent_id and parent_id not in seen:
            seen.add(parent_id)
            parent = self._tasks.get(parent_id)
            if parent is None:
                return False
            if parent.query_parent:
                return True
            parent_id = parent.parent
        return False

    def scheduled_between(self, start: dt.datetime, end: dt.datetime) -> List[Task]:
        """Timed (non all-day) tasks with start <= scheduled < end, in time order."""
        out = [
            t
            for t in self._tasks.values()
            if t.scheduled is not None and not t.scheduled.is_date and start <= t.scheduled.at() < end
        ]
        out.sort(key=lambda t: (t.scheduled.sort_key() if t.scheduled else (dt.date.min, 0, 0), t.id))
        return out

    def on_day(self, day: dt.date) -> List[Task]:
        return [t for t in self._tasks.values() if isinstance(t.scheduled, TaskDate) and t.scheduled.day == day]


def raw_items_digest(raw_items: Sequence[RawItem]) -> str:
    """sha256 over a stable JSON rendering of the raw items."""
    rows = [item.as_dict() for item in raw_items]
    if orjson is not None:
        blob = orjson.dumps(rows, option=orjson.OPT_SORT_KEYS)
    else:
        blob = json.dumps(rows, sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()


def _future_start(item: RawItem, today: dt.date) -> bool:
    raw = item.fields.get("start") or find_emoji_date(item.text, "start")
    if not raw:
        return False
    d = TaskDate.parse(str(raw))
    return d is not None and d.day > today


class GraphLoader:
    """Rebuilds the graph from store items, skipping identical reloads."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.graph = TaskGraph({})
        self._digest: Optional[str] = None
        self.rebuilds = 0

    def filter_items(self, raw_items: Iterable[RawItem], *, today: Optional[dt.date] = None) -> List[RawItem]:
        """Drop completed items, excluded paths and tasks whose start date is still ahead."""
        today = today or dt.date.today()
        out: List[RawItem] = []
        for item in raw_items:
            if item.completed:
                continue
            if self.settings.is_excluded(item.path):
                continue
            if _future_start(item, today):
                continue
            out.append(item)
        return out

    def reload(self, raw_items: Sequence[RawItem], *, today: Optional[dt.date] = None) -> bool:
        """Returns False (and keeps the current graph) when nothing changed."""
        items = self.filter_items(raw_items, today=today)
        digest = raw_items_digest(items)
        if digest == self._digest:
            obs("graph", f"reload.skip tasks={len(self.graph)}")
            return False
        self._digest = digest
        self.graph = TaskGraph.load(items, daily_note_path=self.settings.daily_note_path)
        self.rebuilds += 1
        self.settings.merge_file_order(self.graph.paths())
        obs("graph", f"reload.ok tasks={len(self.graph)} rebuilds={self.rebuilds}")
        return True


__all__ = [
    "GraphLoader",
    "TaskGraph",
    "raw_items_digest",
]
