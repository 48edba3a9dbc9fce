# timeruler/store.py
"""Store boundary.

`TaskStore` is what the engine needs from a document store. `VaultStore`
implements it over a folder of markdown files; `MemoryStore` records calls
without touching disk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .codec import task_to_text, text_to_task
from .codec.stages import find_inline_fields
from .config import Settings
from .errors import StoreError
from .model import Position, RawItem, Task, make_task_id, patch_task, task_id_sort_key
from .util.console import obs

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_TASK_RE = re.compile(r"^(\s*)(?:[-*+]|\d+[.)])\s+\[(.)\]\s?(.*)$")


class TaskStore(Protocol):
    def fetch_raw_items(self, query: Optional[str] = None) -> List[RawItem]:
        """Stable-ordered raw items, optionally limited to a path prefix."""

    def patch_tasks(self, ids: Sequence[str], fields: Dict[str, Any]) -> None:
        """Apply the same partial field set to every id."""

    def delete_tasks(self, ids: Sequence[str]) -> None:
        """Delete in the given order."""

    def create_task(self, path: str, heading: Optional[str], fields: Dict[str, Any]) -> str:
        """Insert a new task and return its id."""


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _indent_width(ws: str) -> int:
    return len(ws.replace("\t", "    "))


def index_markdown(text: str, path: str) -> List[RawItem]:
    """Index the checkbox lines of one markdown document.

    Indentation defines children; indented plain lines right below a task are
    its notes. Completed children are not listed as children.
    """
    lines = text.split("\n")
    items: Dict[int, Dict[str, Any]] = {}
    order: List[int] = []
    stack: List[Tuple[int, int]] = []  # (indent, line)
    heading: Optional[str] = None
    last_task: Optional[int] = None

    for n, line in enumerate(lines):
        hm = _HEADING_RE.match(line)
        if hm:
            heading = hm.group(2)
            stack = []
            last_task = None
            continue

        tm = _TASK_RE.match(line)
        if not tm:
            if last_task is not None and line.strip() and _indent_width(_leading_ws(line)) > items[last_task]["indent"]:
                items[last_task]["notes"].append(line.strip())
            else:
                last_task = None
            continue

        indent = _indent_width(tm.group(1))
        completed = tm.group(2) not in (" ", "")
        while stack and stack[-1][0] >= indent:
            stack.pop()
        parent = stack[-1][1] if stack else None
        if parent is not None and not completed:
            items[parent]["children"].append(n)

        items[n] = {
            "indent": indent,
            "text": tm.group(3),
            "completed": completed,
            "parent": parent,
            "children": [],
            "notes": [],
            "heading": heading,
            "width": len(line),
        }
        order.append(n)
        stack.append((indent, n))
        last_task = n

    out: List[RawItem] = []
    for n in order:
        it = items[n]
        text_full = it["text"]
        if it["notes"]:
            text_full += "\n" + "\n".join(it["notes"])
        out.append(
            RawItem(
                text=text_full,
                path=path,
                line=n,
                heading=it["heading"],
                position=Position(start_line=n, start_col=it["indent"], end_line=n, end_col=it["width"]),
                fields=dict(find_inline_fields(it["text"])),
                children=tuple(it["children"]),
                parent=it["parent"],
                completed=it["completed"],
            )
        )
    return out


def _note_span_end(lines: List[str], line_no: int) -> int:
    """End (exclusive) of the task at `line_no` plus the note lines index_markdown gives it."""
    indent = _indent_width(_TASK_RE.match(lines[line_no]).group(1))
    end = line_no + 1
    while end < len(lines):
        line = lines[end]
        if not line.strip() or _HEADING_RE.match(line) or _TASK_RE.match(line):
            break
        if _indent_width(_leading_ws(line)) <= indent:
            break
        end += 1
    return end


def _split_id(task_id: str) -> Tuple[str, int]:
    stem, line = task_id_sort_key(task_id)
    if line < 0:
        raise StoreError(f"malformed task id: {task_id!r}")
    return stem, line


class VaultStore:
    """Markdown folder store: one task per checkbox line."""

    def __init__(self, root: str | Path, settings: Optional[Settings] = None):
        self.root = Path(root)
        self.settings = settings or Settings()

    # --- files ------------------------------------------------------------

    def _abs(self, rel: str) -> Path:
        return self.root / rel

    def _file_for_stem(self, stem: str) -> str:
        for cand in (stem + ".md", stem):
            if self._abs(cand).is_file():
                return cand
        raise StoreError(f"file not found for task: {stem!r}")

    def _read_lines(self, rel: str) -> List[str]:
        try:
            return self._abs(rel).read_text(encoding="utf-8", errors="replace").split("\n")
        except OSError as ex:
            raise StoreError(f"cannot read {rel}: {ex}") from ex

    def _write_lines(self, rel: str, lines: List[str]) -> None:
        p = self._abs(rel)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text("\n".join(lines), encoding="utf-8", newline="\n")
        except OSError as ex:
            raise StoreError(f"cannot write {rel}: {ex}") from ex

    def markdown_files(self) -> List[str]:
        if not self.root.is_dir():
            raise StoreError(f"vault folder not found: {self.root}")
        return sorted(p.relative_to(self.root).as_posix() for p in self.root.rglob("*.md") if p.is_file())

    # --- read -------------------------------------------------------------

    def fetch_raw_items(self, query: Optional[str] = None) -> List[RawItem]:
        files = self.markdown_files()
        out: List[RawItem] = []
        for rel in files:
            if query and not rel.startswith(query):
                continue
            out.extend(index_markdown("\n".join(self._read_lines(rel)), rel))
        obs("store", f"fetch files={len(files)} items={len(out)}")
        return out

    def _task_at(self, rel: str, lines: List[str], line_no: int) -> Tuple[Task, str]:
        if line_no >= len(lines) or not _TASK_RE.match(lines[line_no]):
            raise StoreError(f"no task at {rel}:{line_no} (file changed since load?)")
        for item in index_markdown("\n".join(lines), rel):
            if item.line == line_no:
                task = text_to_task(item, daily_note_path=self.settings.daily_note_path)
                return task, _leading_ws(lines[line_no])
        raise StoreError(f"no task at {rel}:{line_no}")

    # --- write ------------------------------------------------------------

    def patch_tasks(self, ids: Sequence[str], fields: Dict[str, Any]) -> None:
        by_file: Dict[str, List[int]] = {}
        for task_id in ids:
            stem, line_no = _split_id(task_id)
            by_file.setdefault(self._file_for_stem(stem), []).append(line_no)

        for rel, line_nos in by_file.items():
            lines = self._read_lines(rel)
            for line_no in line_nos:
                task, indent = self._task_at(rel, lines, line_no)
                try:
                    patched = patch_task(task, fields)
                except ValueError as ex:
                    raise StoreError(f"cannot patch {task.id}: {ex}") from ex
                lines[line_no] = indent + task_to_text(patched, self.settings.field_format)
            self._write_lines(rel, lines)
            obs("store", f"patch file={rel} tasks={len(line_nos)}")

    def delete_tasks(self, ids: Sequence[str]) -> None:
        for task_id in ids:
            stem, line_no = _split_id(task_id)
            rel = self._file_for_stem(stem)
            lines = self._read_lines(rel)
            if line_no >= len(lines) or not _TASK_RE.match(lines[line_no]):
                raise StoreError(f"no task at {rel}:{line_no} (file changed since load?)")
            del lines[line_no:_note_span_end(lines, line_no)]
            self._write_lines(rel, lines)
        obs("store", f"delete tasks={len(ids)}")

    def create_task(self, path: str, heading: Optional[str], fields: Dict[str, Any]) -> str:
        rel = path if path.endswith(".md") else path + ".md"
        p = self._abs(rel)
        lines = self._read_lines(rel) if p.is_file() else []
        if lines == [""]:
            lines = []

        insert_at = 0
        if heading:
            heading_re = re.compile(r"^#+ " + re.escape(heading) + r"$")
            found = next((i for i, line in enumerate(lines) if heading_re.match(line)), -1)
            if found >= 0:
                insert_at = found + 1
            elif not lines:
                lines = [f"# {heading}"]
                insert_at = 1

        draft = Task(id=make_task_id(rel, insert_at), path=rel, heading=heading)
        try:
            task = patch_task(draft, fields)
        except ValueError as ex:
            raise StoreError(f"cannot create task in {rel}: {ex}") from ex

        lines.insert(insert_at, task_to_text(task, self.settings.field_format))
        self._write_lines(rel, lines)
        obs("store", f"create file={rel} line={insert_at}")
        return task.id


@dataclass
class MemoryStore:
    """Records store calls; `items` is what fetch_raw_items returns."""

    items: List[RawItem] = field(default_factory=list)
    patches: List[Tuple[Tuple[str, ...], Dict[str, Any]]] = field(default_factory=list)
    deletes: List[Tuple[str, ...]] = field(default_factory=list)
    creates: List[Tuple[str, Optional[str], Dict[str, Any]]] = field(default_factory=list)

    def fetch_raw_items(self, query: Optional[str] = None) -> List[RawItem]:
        return [i for i in self.items if not query or i.path.startswith(query)]

    def patch_tasks(self, ids: Sequence[str], fields: Dict[str, Any]) -> None:
        self.patches.append((tuple(ids), dict(fields)))

    def delete_tasks(self, ids: Sequence[str]) -> None:
        self.deletes.append(tuple(ids))

    def create_task(self, path: str, heading: Optional[str], fields: Dict[str, Any]) -> str:
        self.creates.append((path, heading, dict(fields)))
        return make_task_id(path, 0)

    @property
    def call_count(self) -> int:
        return len(self.patches) + len(self.deletes) + len(self.creates)


__all__ = [
    "MemoryStore",
    "TaskStore",
    "VaultStore",
    "index_markdown",
]
