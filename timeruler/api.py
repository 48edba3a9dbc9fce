"""timeruler.api

Stable *library* entrypoint for TIMERULER.

Policy:
  - Only names listed in __all__ are considered public API.
  - Everything else is internal and may change without notice.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from timeruler.codec import DIALECTS, clean_title, parse_task_line, task_to_text, text_to_task
from timeruler.config import SETTINGS_FILENAME, Settings, apply_env, load_settings, save_settings
from timeruler.context import EngineContext
from timeruler.drag import (
    BlockDrag,
    Confirmation,
    DeleteDrop,
    DragController,
    DueDrag,
    GroupDrag,
    HeadingDrop,
    NewTaskDrag,
    NowDrag,
    SlotDrop,
    TaskDrag,
    TaskLengthDrag,
    TimeDrag,
    apply_outcome,
    resolve_drop,
)
from timeruler.errors import PreconditionError, StoreError, TimeRulerError
from timeruler.graph import GraphLoader, TaskGraph
from timeruler.layout import Block, Event, Span, blocks_from_tasks, layout_blocks
from timeruler.model import RawItem, Task, TaskDate, TaskLength
from timeruler.store import MemoryStore, TaskStore, VaultStore

PathLike = Union[str, Path]


def open_vault(root: PathLike, settings_path: Optional[PathLike] = None, **ctx_kwargs) -> EngineContext:
    """Build a context over a markdown folder and load its tasks.

    Settings come from `settings_path` (default: <root>/.timeruler.json) with
    TIMERULER_* env overrides applied. File-order changes are written back there.
    """
    root = Path(root)
    sp = Path(settings_path) if settings_path else root / SETTINGS_FILENAME
    settings = apply_env(load_settings(sp))
    ctx = EngineContext(
        settings=settings,
        store=VaultStore(root, settings),
        save_settings=lambda s: save_settings(s, sp),
        **ctx_kwargs,
    )
    ctx.reload()
    return ctx


def day_blocks(
    graph: TaskGraph,
    day: dt.date,
    events: Optional[Mapping[dt.datetime, Sequence[Event]]] = None,
) -> List[Block]:
    return blocks_from_tasks((t for t in graph.on_day(day) if not t.completed), events)


def day_layout(
    ctx: EngineContext,
    day: Optional[dt.date] = None,
    events: Optional[Mapping[dt.datetime, Sequence[Event]]] = None,
) -> List[Span]:
    """Layout of one day's timed tasks over the configured day window."""
    day = day or ctx.now().date()
    start, end = ctx.settings.day_window(day)
    return layout_blocks(day_blocks(ctx.graph, day, events), start, end, extend=ctx.settings.extend_blocks)


__all__ = [
    "Block",
    "BlockDrag",
    "Confirmation",
    "DIALECTS",
    "DeleteDrop",
    "DragController",
    "DueDrag",
    "EngineContext",
    "Event",
    "GraphLoader",
    "GroupDrag",
    "HeadingDrop",
    "MemoryStore",
    "NewTaskDrag",
    "NowDrag",
    "PreconditionError",
    "RawItem",
    "Settings",
    "SlotDrop",
    "Span",
    "StoreError",
    "Task",
    "TaskDate",
    "TaskDrag",
    "TaskGraph",
    "TaskLength",
    "TaskLengthDrag",
    "TaskStore",
    "TimeDrag",
    "TimeRulerError",
    "VaultStore",
    "apply_outcome",
    "blocks_from_tasks",
    "clean_title",
    "day_blocks",
    "day_layout",
    "layout_blocks",
    "load_settings",
    "open_vault",
    "parse_task_line",
    "resolve_drop",
    "task_to_text",
    "text_to_task",
]
