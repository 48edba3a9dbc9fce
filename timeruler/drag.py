# timeruler/drag.py
"""Drag-and-drop interpretation.

`resolve_drop` is pure: (drag payload, drop target, graph, settings) -> an
intent, possibly wrapped in a Confirmation. `apply_outcome` performs it
against the context's store. `DragController` holds the only state, the
payload of the gesture in progress.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from .config import Settings
from .context import EngineContext
from .errors import StoreError
from .graph import TaskGraph
from .model import Task, TaskDate, TaskLength, task_id_sort_key
from .util.console import obs
from .util.timeparse import fmt_delta

# --- drag payloads ------------------------------------------------------------


@dataclass(frozen=True)
class TaskDrag:
    kind: ClassVar[str] = "task"
    task_id: str
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class BlockDrag:
    """A block flattened to its tasks and their descendants."""

    kind: ClassVar[str] = "block"
    task_ids: Tuple[str, ...]
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class GroupDrag:
    """All tasks of one file/heading group."""

    kind: ClassVar[str] = "group"
    path: str
    task_ids: Tuple[str, ...] = ()
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class NowDrag:
    kind: ClassVar[str] = "now"
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class NewTaskDrag:
    kind: ClassVar[str] = "new_button"
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class TaskLengthDrag:
    """Resize handle at the bottom of a task."""

    kind: ClassVar[str] = "task-length"
    task_id: str
    start: TaskDate
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class TimeDrag:
    """A timeline slot dragged out; with task_id it moves that task."""

    kind: ClassVar[str] = "time"
    start: TaskDate
    task_id: Optional[str] = None
    drag_id: Optional[str] = None


@dataclass(frozen=True)
class DueDrag:
    kind: ClassVar[str] = "due"
    task_id: str
    drag_id: Optional[str] = None


DragPayload = Union[TaskDrag, BlockDrag, GroupDrag, NowDrag, NewTaskDrag, TaskLengthDrag, TimeDrag, DueDrag]

# --- drop targets -------------------------------------------------------------


@dataclass(frozen=True)
class SlotDrop:
    """A drop that carries task fields: a timeline slot, or a task used as a template."""

    kind: ClassVar[str] = "slot"
    fields: Dict[str, Any] = field(default_factory=dict)
    drop_id: Optional[str] = None

    @property
    def scheduled(self) -> Optional[TaskDate]:
        return TaskDate.parse(self.fields.get("scheduled"))

    @classmethod
    def at(cls, when: Union[TaskDate, str], drop_id: Optional[str] = None) -> "SlotDrop":
        return cls(fields={"scheduled": TaskDate.parse(when)}, drop_id=drop_id)

    @classmethod
    def from_task(cls, task: Task) -> "SlotDrop":
        fields: Dict[str, Any] = {}
        if task.scheduled is not None:
            fields["scheduled"] = task.scheduled
        if task.due is not None:
            fields["due"] = task.due
        return cls(fields=fields, drop_id=task.id)


@dataclass(frozen=True)
class HeadingDrop:
    kind: ClassVar[str] = "heading"
    heading: str
    drop_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteDrop:
    kind: ClassVar[str] = "delete"
    drop_id: Optional[str] = "delete"


DropTarget = Union[SlotDrop, HeadingDrop, DeleteDrop]

# --- intents ------------------------------------------------------------------


@dataclass(frozen=True)
class NoOp:
    reason: str = ""


@dataclass(frozen=True)
class OpenDraft:
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReorderGroup:
    path: str
    before: str


@dataclass(frozen=True)
class DeleteTasks:
    ids: Tuple[str, ...]


@dataclass(frozen=True)
class PatchTasks:
    ids: Tuple[str, ...]
    fields: Dict[str, Any]


@dataclass(frozen=True)
class ShiftTasks:
    """Per-timestamp groups moved by the same delta, in ascending time order."""

    moves: Tuple[Tuple[Tuple[str, ...], TaskDate], ...]
    delta_min: int


Intent = Union[NoOp, OpenDraft, ReorderGroup, DeleteTasks, PatchTasks, ShiftTasks]


@dataclass(frozen=True)
class Confirmation:
    prompt: str
    intent: Intent


Outcome = Union[Intent, Confirmation]

# --- resolution ---------------------------------------------------------------


def _minutes_between(a: TaskDate, b: TaskDate) -> int:
    return int((b.at() - a.at()).total_seconds() // 60)


def _dragged_ids(drag: DragPayload) -> Tuple[str, ...]:
    if isinstance(drag, (BlockDrag, GroupDrag)):
        return tuple(drag.task_ids)
    if isinstance(drag, TaskDrag):
        return (drag.task_id,)
    return ()


def _resolve_delete(drag: DragPayload, graph: TaskGraph) -> Outcome:
    ids = _dragged_ids(drag)
    if not ids:
        return NoOp("nothing to delete")
    closure = set(ids)
    for task_id in ids:
        closure |= graph.descendants(task_id)
    ordered = sorted(closure, key=task_id_sort_key)
    ordered.reverse()
    intent = DeleteTasks(ids=tuple(ordered))
    if len(ordered) > 1:
        return Confirmation(prompt=f"Delete {len(ordered)} tasks and children?", intent=intent)
    return intent


def shift_candidates(graph: TaskGraph, settings: Settings, now: dt.datetime) -> List[Tuple[TaskDate, List[str]]]:
    """Today's open timed tasks grouped by exact timestamp, earliest first.

    Query parents and tasks below a query parent are not moved.
    """
    start, end = settings.today_bounds(now)
    groups: Dict[TaskDate, List[str]] = {}
    for t in graph.scheduled_between(start, end):
        if t.completed or t.completion is not None:
            continue
        if t.query_parent or graph.ancestor_is_query_parent(t.id):
            continue
        if t.scheduled is None:
            continue
        groups.setdefault(t.scheduled, []).append(t.id)
    return sorted(groups.items(), key=lambda kv: kv[0].sort_key())


def _resolve_now(drop: SlotDrop, graph: TaskGraph, settings: Settings, now: dt.datetime) -> Outcome:
    target = drop.scheduled
    if target is None or target.is_date:
        return NoOp("drop has no time")
    by_time = shift_candidates(graph, settings, now)
    if not by_time:
        return NoOp("no tasks to shift today")
    delta = _minutes_between(by_time[0][0], target)
    if delta == 0:
        return NoOp("no shift")
    moves = tuple((tuple(ids), when.shifted(delta)) for when, ids in by_time)
    return Confirmation(prompt=f"Shift tasks by {fmt_delta(delta)}?", intent=ShiftTasks(moves=moves, delta_min=delta))


def _resolve_time(drag: Union[TimeDrag, TaskLengthDrag], drop: SlotDrop, graph: TaskGraph) -> Outcome:
    target = drop.scheduled
    if target is None:
        return NoOp("drop has no time")
    delta = _minutes_between(drag.start, target)

    if isinstance(drag, TaskLengthDrag):
        if delta < 0:
            return NoOp("negative length")
        return PatchTasks(ids=(drag.task_id,), fields={"length": TaskLength.from_minutes(delta)})

    if drag.task_id is None:
        start = drag.start if delta >= 0 else target
        fields: Dict[str, Any] = {"scheduled": start}
        if delta:
            fields["length"] = TaskLength.from_minutes(abs(delta))
        return OpenDraft(fields=fields)

    task = graph.get(drag.task_id)
    if task is None:
        return NoOp("unknown task")
    fields = {"scheduled": target}
    if task.length is not None and not task.length.is_zero:
        fields["length"] = task.length
    return PatchTasks(ids=(task.id,), fields=fields)


def resolve_drop(
    drag: Optional[DragPayload],
    drop: Optional[DropTarget],
    graph: TaskGraph,
    settings: Settings,
    *,
    now: Optional[dt.datetime] = None,
) -> Outcome:
    """Turn a finished gesture into what should happen. No side effects."""
    if drag is None:
        return NoOp("no drag in progress")
    if drop is not None and drag.drag_id is not None and drop.drop_id == drag.drag_id:
        return NoOp("dropped on its own source")

    if drop is None:
        if isinstance(drag, NewTaskDrag):
            return OpenDraft()
        return NoOp("dropped outside any target")

    if isinstance(drop, HeadingDrop):
        if isinstance(drag, GroupDrag):
            return ReorderGroup(path=drag.path, before=drop.heading)
        return NoOp("only groups reorder")

    if isinstance(drop, DeleteDrop):
        return _resolve_delete(drag, graph)

    if isinstance(drag, NowDrag):
        return _resolve_now(drop, graph, settings, now or dt.datetime.now())
    if isinstance(drag, NewTaskDrag):
        return OpenDraft(fields=dict(drop.fields))
    if isinstance(drag, (TimeDrag, TaskLengthDrag)):
        return _resolve_time(drag, drop, graph)
    if isinstance(drag, DueDrag):
        target = drop.scheduled
        if target is None:
            return NoOp("drop has no date")
        return PatchTasks(ids=(drag.task_id,), fields={"due": target.day})

    if not drop.fields:
        return NoOp("drop carries no fields")
    if isinstance(drag, (BlockDrag, GroupDrag)):
        if not drag.task_ids:
            return NoOp("empty group")
        return PatchTasks(ids=tuple(drag.task_ids), fields=dict(drop.fields))
    if isinstance(drag, TaskDrag):
        return PatchTasks(ids=(drag.task_id,), fields=dict(drop.fields))
    return NoOp(f"unhandled drag kind: {drag.kind}")


# --- application --------------------------------------------------------------


def apply_outcome(outcome: Outcome, ctx: EngineContext) -> bool:
    """Carry out a resolved outcome. Returns False when nothing was done.

    A declined confirmation is a silent abort. StoreError and
    PreconditionError propagate.
    """
    if isinstance(outcome, Confirmation):
        if not ctx.confirm(outcome.prompt):
            obs("drag", f"declined: {outcome.prompt}")
            return False
        outcome = outcome.intent

    if isinstance(outcome, NoOp):
        obs("drag", f"noop: {outcome.reason}")
        return False
    if isinstance(outcome, OpenDraft):
        ctx.open_draft(dict(outcome.fields))
        return True
    if isinstance(outcome, ReorderGroup):
        ctx.settings.update_file_order(outcome.path, outcome.before)
        ctx.persist_settings()
        return True
    if isinstance(outcome, DeleteTasks):
        ctx.store.delete_tasks(list(outcome.ids))
        return True
    if isinstance(outcome, PatchTasks):
        ctx.store.patch_tasks(list(outcome.ids), dict(outcome.fields))
        return True
    if isinstance(outcome, ShiftTasks):
        for ids, when in outcome.moves:
            ctx.store.patch_tasks(list(ids), {"scheduled": when})
        return True
    raise TypeError(f"unknown outcome: {type(outcome).__name__}")


class DragController:
    """idle -> dragging(payload) -> idle.

    `drop` always returns to idle, whether the outcome applies, is declined,
    or fails. Store failures are reported through ctx.notify and re-raised;
    the graph is reconciled by the next reload.
    """

    def __init__(self, ctx: EngineContext):
        self.ctx = ctx
        self.payload: Optional[DragPayload] = None
        self.last_outcome: Optional[Outcome] = None
        self.last_error: Optional[StoreError] = None

    @property
    def state(self) -> str:
        return "idle" if self.payload is None else "dragging"

    def start(self, payload: DragPayload) -> None:
        self.payload = payload

    def cancel(self) -> None:
        self.payload = None

    def drop(self, target: Optional[DropTarget]) -> bool:
        payload, self.payload = self.payload, None
        self.last_error = None
        outcome = resolve_drop(payload, target, self.ctx.graph, self.ctx.settings, now=self.ctx.now())
        self.last_outcome = outcome
        try:
            return apply_outcome(outcome, self.ctx)
        except StoreError as ex:
            self.last_error = ex
            self.ctx.notify(f"ERROR: {ex}")
            raise


__all__ = [
    "BlockDrag",
    "Confirmation",
    "DeleteDrop",
    "DeleteTasks",
    "DragController",
    "DragPayload",
    "DropTarget",
    "DueDrag",
    "GroupDrag",
    "HeadingDrop",
    "Intent",
    "NewTaskDrag",
    "NoOp",
    "NowDrag",
    "OpenDraft",
    "Outcome",
    "PatchTasks",
    "ReorderGroup",
    "ShiftTasks",
    "SlotDrop",
    "TaskDrag",
    "TaskLengthDrag",
    "TimeDrag",
    "apply_outcome",
    "resolve_drop",
    "shift_candidates",
]
