# timeruler/layout.py
"""Block layout: scheduled blocks -> nested, gap-filled spans over a window.

One greedy pass over start-ordered blocks:
  - a block absorbs every following block that starts strictly before its end
    (those are laid out recursively inside it)
  - with `extend`, a zero-duration block ends where the next top-level block
    starts (or at the window end)
  - fillers cover the empty time between top-level spans

Top-level spans always tile [window_start, window_end).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .model import Task

KIND_BLOCK = "block"
KIND_FILLER = "filler"


@dataclass(frozen=True)
class Event:
    """An external calendar entry shown inside a block."""

    id: str
    title: str = ""
    location: str = ""
    notes: str = ""


@dataclass(frozen=True)
class Block:
    start: dt.datetime
    end: dt.datetime
    task_ids: Tuple[str, ...] = ()
    events: Tuple[Event, ...] = ()

    @property
    def is_point(self) -> bool:
        return self.end <= self.start


@dataclass(frozen=True)
class Span:
    start: dt.datetime
    end: dt.datetime
    kind: str
    block: Optional[Block] = None
    children: Tuple["Span", ...] = ()
    chop_start: bool = False
    chop_end: bool = False

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def is_filler(self) -> bool:
        return self.kind == KIND_FILLER


def blocks_from_tasks(
    tasks: Iterable[Task],
    events: Optional[Mapping[dt.datetime, Sequence[Event]]] = None,
) -> List[Block]:
    """Group timed tasks by exact start; a block ends after its longest task.

    `events` are attached to the block starting at the same minute; a start
    with events but no task becomes a zero-length block of its own.
    """
    grouped: Dict[dt.datetime, List[Task]] = {}
    for t in tasks:
        if t.scheduled is None or t.scheduled.is_date:
            continue
        grouped.setdefault(t.scheduled.at(), []).append(t)
    events = events or {}

    out: List[Block] = []
    for start in sorted(set(grouped) | set(events)):
        group = sorted(grouped.get(start, ()), key=lambda t: t.id)
        longest = max(((t.length.total_minutes if t.length else 0) for t in group), default=0)
        out.append(
            Block(
                start=start,
                end=start + dt.timedelta(minutes=longest),
                task_ids=tuple(t.id for t in group),
                events=tuple(events.get(start, ())),
            )
        )
    return out


def _visible(b: Block, window_start: dt.datetime, window_end: dt.datetime) -> bool:
    if b.start >= window_end:
        return False
    if b.start >= window_start:
        return True
    return b.end > window_start


def _filler(start: dt.datetime, end: dt.datetime, *, chop_start: bool, chop_end: bool) -> Span:
    return Span(start=start, end=end, kind=KIND_FILLER, chop_start=chop_start, chop_end=chop_end)


def layout_blocks(
    blocks: Sequence[Block],
    window_start: dt.datetime,
    window_end: dt.datetime,
    *,
    extend: bool = False,
    chop_edges: bool = False,
) -> List[Span]:
    """Lay out blocks over [window_start, window_end).

    chop_edges: also chop fillers on the window boundaries (used for nested
    layouts, whose window is the parent block).
    """
    if window_end < window_start:
        raise ValueError("window_end must not be before window_start")

    items = sorted((b for b in blocks if _visible(b, window_start, window_end)), key=lambda b: b.start)

    groups: List[Tuple[Block, dt.datetime, dt.datetime, List[Block]]] = []
    i = 0
    while i < len(items):
        this = items[i]
        nested: List[Block] = []
        j = i + 1
        while j < len(items) and items[j].start < this.end:
            nested.append(items[j])
            j += 1

        if extend and this.end == this.start:
            end = items[j].start if j < len(items) else window_end
        else:
            end = this.end

        start = max(this.start, window_start)
        end = max(start, min(end, window_end))
        groups.append((this, start, end, nested))
        i = j

    spans: List[Span] = []
    cursor = window_start
    for n, (block, start, end, nested) in enumerate(groups):
        if start > cursor:
            spans.append(_filler(cursor, start, chop_start=(n > 0) or chop_edges, chop_end=True))
        children = layout_blocks(nested, start, end, extend=extend, chop_edges=True) if nested else []
        spans.append(Span(start=start, end=end, kind=KIND_BLOCK, block=block, children=tuple(children)))
        cursor = end

    if cursor < window_end:
        spans.append(_filler(cursor, window_end, chop_start=bool(groups) or chop_edges, chop_end=chop_edges))

    return spans


def iter_spans(spans: Sequence[Span], depth: int = 0) -> Iterator[Tuple[int, Span]]:
    """Depth-first (depth, span) pairs."""
    for s in spans:
        yield depth, s
        yield from iter_spans(s.children, depth + 1)


def covered_minutes(spans: Sequence[Span]) -> int:
    return sum(s.minutes for s in spans)


def is_tiled(spans: Sequence[Span], window_start: dt.datetime, window_end: dt.datetime) -> bool:
    """True when sibling spans cover the window exactly, in order, without overlap."""
    cursor = window_start
    for s in spans:
        if s.start != cursor or s.end < s.start:
            return False
        cursor = s.end
    return cursor == window_end


__all__ = [
    "Block",
    "Event",
    "KIND_BLOCK",
    "KIND_FILLER",
    "Span",
    "blocks_from_tasks",
    "covered_minutes",
    "is_tiled",
    "iter_spans",
    "layout_blocks",
]
