from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

try:
    import orjson  # type: ignore
except Exception:  # pragma: no cover
    orjson = None  # type: ignore

from .api import day_layout, open_vault
from .context import EngineContext
from .drag import (
    DeleteDrop,
    DragController,
    DragPayload,
    DropTarget,
    GroupDrag,
    HeadingDrop,
    NoOp,
    NowDrag,
    SlotDrop,
    TaskDrag,
    TaskLengthDrag,
)
from .errors import PreconditionError, StoreError
from .layout import iter_spans
from .model import Task, TaskDate, task_id_sort_key
from .util.console import eprint
from .util.duration import fmt_length
from .util.timeparse import fmt_hhmm, parse_date_yyyy_mm_dd, parse_hhmm


def _die(msg: str, rc: int = 2) -> int:
    print(f"[timeruler] ERROR: {msg}", file=sys.stderr)
    return rc


def _ask(prompt: str) -> bool:
    try:
        ans = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return ans.strip().lower() in {"y", "yes"}


def _task_row(t: Task) -> Dict[str, Any]:
    return {
        "id": t.id,
        "title": t.title,
        "path": t.path,
        "heading": t.heading,
        "scheduled": t.scheduled.iso() if t.scheduled else None,
        "due": t.due.isoformat() if t.due else None,
        "length": fmt_length(t.length.hour, t.length.minute) if t.length else None,
        "priority": t.priority,
        "tags": list(t.tags),
        "parent": t.parent,
        "children": list(t.children),
    }


def _dump_json(obj: Any) -> str:
    if orjson is not None:
        return orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode("utf-8")
    return json.dumps(obj, ensure_ascii=False, indent=2)


def _cmd_tasks(ctx: EngineContext, ns: argparse.Namespace) -> int:
    tasks = sorted(ctx.graph, key=lambda t: task_id_sort_key(t.id))
    if ns.json:
        print(_dump_json([_task_row(t) for t in tasks]))
        return 0
    for t in tasks:
        when = t.scheduled.iso() if t.scheduled else "-"
        length = fmt_length(t.length.hour, t.length.minute) if t.length else "-"
        print(f"{t.id}\t{when}\t{length}\t{t.title}")
    return 0


def _cmd_layout(ctx: EngineContext, ns: argparse.Namespace) -> int:
    day = parse_date_yyyy_mm_dd(ns.date) if ns.date else ctx.now().date()
    for depth, span in iter_spans(day_layout(ctx, day)):
        rng = f"{fmt_hhmm(span.start.hour, span.start.minute)}-{fmt_hhmm(span.end.hour, span.end.minute)}"
        pad = "  " * depth
        if span.block is None:
            print(f"{pad}{rng}  .")
            continue
        titles = []
        for tid in span.block.task_ids:
            t = ctx.graph.get(tid)
            titles.append(t.title if t else tid)
        print(f"{pad}{rng}  " + " | ".join(titles))
    return 0


def _gesture(ctx: EngineContext, drag: DragPayload, drop: Optional[DropTarget]) -> int:
    ctrl = DragController(ctx)
    ctrl.start(drag)
    try:
        done = ctrl.drop(drop)
    except StoreError:
        # already reported through ctx.notify
        return 1
    except PreconditionError as e:
        return _die(str(e))
    if not done:
        if isinstance(ctrl.last_outcome, NoOp):
            print(f"[timeruler] nothing to do ({ctrl.last_outcome.reason})")
        else:
            print("[timeruler] cancelled")
    return 0


def _require_task(ctx: EngineContext, task_id: str) -> Optional[Task]:
    t = ctx.graph.get(task_id)
    if t is None:
        _die(f"unknown task id: {task_id}")
    return t


def _cmd_shift(ctx: EngineContext, ns: argparse.Namespace) -> int:
    hh, mm = parse_hhmm(ns.to)
    target = TaskDate(ctx.now().date(), (hh, mm))
    return _gesture(ctx, NowDrag(), SlotDrop.at(target))


def _cmd_move(ctx: EngineContext, ns: argparse.Namespace) -> int:
    if _require_task(ctx, ns.id) is None:
        return 2
    target = TaskDate.parse(ns.to)
    if target is None:
        return _die(f"invalid --to value (expected YYYY-MM-DD[THH:MM]): {ns.to}")
    return _gesture(ctx, TaskDrag(ns.id), SlotDrop.at(target))


def _cmd_resize(ctx: EngineContext, ns: argparse.Namespace) -> int:
    t = _require_task(ctx, ns.id)
    if t is None:
        return 2
    if t.scheduled is None or t.scheduled.is_date:
        return _die(f"task has no scheduled time: {ns.id}")
    hh, mm = parse_hhmm(ns.to)
    drop = SlotDrop.at(TaskDate(t.scheduled.day, (hh, mm)))
    return _gesture(ctx, TaskLengthDrag(t.id, start=t.scheduled), drop)


def _cmd_delete(ctx: EngineContext, ns: argparse.Namespace) -> int:
    if _require_task(ctx, ns.id) is None:
        return 2
    return _gesture(ctx, TaskDrag(ns.id), DeleteDrop())


def _cmd_reorder(ctx: EngineContext, ns: argparse.Namespace) -> int:
    ids = tuple(t.id for t in ctx.graph if t.path == ns.path)
    return _gesture(ctx, GroupDrag(ns.path, ids), HeadingDrop(ns.before))


def _cmd_add(ctx: EngineContext, ns: argparse.Namespace) -> int:
    fields: Dict[str, Any] = {"title": ns.title or "New task"}
    if ns.at:
        when = TaskDate.parse(ns.at)
        if when is None:
            return _die(f"invalid --at value (expected YYYY-MM-DD[THH:MM]): {ns.at}")
        fields["scheduled"] = when
    try:
        task_id = ctx.store.create_task(ns.path, ns.heading, fields)
    except StoreError as e:
        return _die(str(e), rc=1)
    print(task_id)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="timeruler", description="Schedule markdown tasks on a day timeline.")
    ap.add_argument("--vault", default=".", help="Folder of markdown files (default: current directory)")
    ap.add_argument("--settings", default=None, help="Settings JSON (default: <vault>/.timeruler.json)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("tasks", help="List loaded tasks")
    p.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    p.set_defaults(fn=_cmd_tasks)

    p = sub.add_parser("layout", help="Print the block layout of a day")
    p.add_argument("--date", default=None, help="Day YYYY-MM-DD (default: today)")
    p.set_defaults(fn=_cmd_layout)

    p = sub.add_parser("shift", help="Shift today's open timed tasks so the earliest starts at --to")
    p.add_argument("--to", required=True, help="Target time HH:MM")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(fn=_cmd_shift)

    p = sub.add_parser("move", help="Reschedule one task")
    p.add_argument("id")
    p.add_argument("--to", required=True, help="YYYY-MM-DD or YYYY-MM-DDTHH:MM")
    p.set_defaults(fn=_cmd_move)

    p = sub.add_parser("resize", help="Set a task's length by its end time")
    p.add_argument("id")
    p.add_argument("--to", required=True, help="End time HH:MM")
    p.set_defaults(fn=_cmd_resize)

    p = sub.add_parser("delete", help="Delete a task and its subtasks")
    p.add_argument("id")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(fn=_cmd_delete)

    p = sub.add_parser("add", help="Create a task")
    p.add_argument("path", help="File path relative to the vault")
    p.add_argument("--heading", default=None)
    p.add_argument("--title", default=None)
    p.add_argument("--at", default=None, help="Scheduled YYYY-MM-DD[THH:MM]")
    p.set_defaults(fn=_cmd_add)

    p = sub.add_parser("reorder", help="Move a file group before another in the file order")
    p.add_argument("path")
    p.add_argument("--before", required=True)
    p.set_defaults(fn=_cmd_reorder)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)
    confirm = (lambda _prompt: True) if getattr(ns, "yes", False) else _ask
    try:
        ctx = open_vault(ns.vault, ns.settings, confirm=confirm, notify=lambda msg: eprint(f"[timeruler] {msg}"))
    except StoreError as e:
        return _die(str(e), rc=1)
    try:
        return int(ns.fn(ctx, ns))
    except ValueError as e:
        return _die(str(e))


if __name__ == "__main__":
    raise SystemExit(main())
