# timeruler/context.py
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .graph import GraphLoader, TaskGraph
from .store import TaskStore
from .util.console import eprint

ConfirmFn = Callable[[str], bool]
DraftFn = Callable[[Dict[str, Any]], None]
NotifyFn = Callable[[str], None]


def _notify_stderr(msg: str) -> None:
    eprint(f"[timeruler] {msg}")


def _deny(_prompt: str) -> bool:
    return False


def _ignore_draft(_fields: Dict[str, Any]) -> None:
    return None


@dataclass
class EngineContext:
    """Everything the layout and drag components read or call, passed explicitly.

    confirm: asked before destructive/bulk mutations; declining aborts silently
    open_draft: receives new-task drafts (fields prefilled from the drop)
    notify: user-visible messages (store failures)
    save_settings: persists settings after file-order changes
    clock: "now" for day boundaries
    """

    settings: Settings
    store: TaskStore
    confirm: ConfirmFn = _deny
    open_draft: DraftFn = _ignore_draft
    notify: NotifyFn = _notify_stderr
    save_settings: Optional[Callable[[Settings], None]] = None
    clock: Callable[[], dt.datetime] = dt.datetime.now
    loader: GraphLoader = field(init=False)

    def __post_init__(self) -> None:
        self.loader = GraphLoader(self.settings)

    @property
    def graph(self) -> TaskGraph:
        return self.loader.graph

    def now(self) -> dt.datetime:
        return self.clock()

    def reload(self) -> bool:
        """Fetch from the store and rebuild the graph if the content changed."""
        before = list(self.settings.file_order)
        changed = self.loader.reload(self.store.fetch_raw_items(self.settings.search), today=self.now().date())
        if self.settings.file_order != before:
            self.persist_settings()
        return changed

    def persist_settings(self) -> None:
        if self.save_settings is not None:
            self.save_settings(self.settings)


__all__ = [
    "ConfirmFn",
    "DraftFn",
    "EngineContext",
    "NotifyFn",
]
