# timeruler/config.py
from __future__ import annotations

import datetime as dt
import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from .codec.serialize import DIALECT_DATAVIEW, DIALECTS
from .errors import PreconditionError
from .util.console import eprint

SETTINGS_FILENAME = ".timeruler.json"


@dataclass
class Settings:
    """Engine settings (persisted as JSON next to the vault by default).

    day_start_hour: hour at which "today" starts for bulk shifts (0-23)
    day_end_hour: hour at which the timeline window ends (1-48)
    extend_blocks: stretch zero-duration blocks to the next block
    field_format: annotation dialect used when writing tasks
    exclude_paths: path prefixes never loaded
    file_order: ordering of file groups; extended on load, edited by reorder
    daily_note_path: folder prefix for daily-note date inference (None = any)
    search: only load files under this prefix (None = all)
    """

    day_start_hour: int = 0
    day_end_hour: int = 24
    extend_blocks: bool = False
    field_format: str = DIALECT_DATAVIEW
    exclude_paths: List[str] = field(default_factory=list)
    file_order: List[str] = field(default_factory=list)
    daily_note_path: Optional[str] = None
    search: Optional[str] = None

    def is_excluded(self, path: str) -> bool:
        if self.search and not path.startswith(self.search):
            return True
        return any(path.startswith(p) for p in self.exclude_paths if p)

    def today_bounds(self, now: Optional[dt.datetime] = None) -> Tuple[dt.datetime, dt.datetime]:
        """[midnight + day_start_hour, +1 day) for the day containing `now`."""
        now = now or dt.datetime.now()
        start = dt.datetime(now.year, now.month, now.day) + dt.timedelta(hours=self.day_start_hour)
        return start, start + dt.timedelta(days=1)

    def day_window(self, day: dt.date) -> Tuple[dt.datetime, dt.datetime]:
        base = dt.datetime(day.year, day.month, day.day)
        return base + dt.timedelta(hours=self.day_start_hour), base + dt.timedelta(hours=self.day_end_hour)

    def merge_file_order(self, paths: Iterable[str]) -> bool:
        """Insert unseen paths at their sorted position. Returns True when the order changed."""
        new_paths = sorted({p for p in paths if p not in self.file_order})
        for p in new_paths:
            after = next((i for i, other in enumerate(self.file_order) if other > p), -1)
            if after == -1:
                self.file_order.append(p)
            else:
                self.file_order.insert(after, p)
        return bool(new_paths)

    def update_file_order(self, path: str, before: str) -> None:
        """Move `path` right before `before` in file_order."""
        if before not in self.file_order:
            raise PreconditionError(f"file not in headings list: {before!r}")
        order = [p for p in self.file_order if p != path]
        order.insert(order.index(before) if before != path else self.file_order.index(before), path)
        self.file_order = order

    def to_dict(self) -> dict:
        return asdict(self)


def _as_hour(v: Any, default: int, lo: int, hi: int) -> int:
    if isinstance(v, bool):
        return default
    try:
        n = int(v)
    except (TypeError, ValueError):
        return default
    return max(lo, min(hi, n))


def _as_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off"}:
            return False
    return default


def _as_str_list(v: Any) -> List[str]:
    if not isinstance(v, list):
        return []
    return [str(x).strip() for x in v if str(x).strip()]


def _as_opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def settings_from_dict(raw: Any) -> Settings:
    """Coerce a JSON object into Settings; unknown keys are ignored, bad values fall back."""
    s = Settings()
    if not isinstance(raw, dict):
        return s

    s.day_start_hour = _as_hour(raw.get("day_start_hour"), s.day_start_hour, 0, 23)
    s.day_end_hour = _as_hour(raw.get("day_end_hour"), s.day_end_hour, 1, 48)
    if s.day_end_hour <= s.day_start_hour:
        s.day_end_hour = s.day_start_hour + 24
    s.extend_blocks = _as_bool(raw.get("extend_blocks"), s.extend_blocks)

    ff = str(raw.get("field_format") or s.field_format).strip().lower()
    s.field_format = ff if ff in DIALECTS else DIALECT_DATAVIEW

    s.exclude_paths = _as_str_list(raw.get("exclude_paths"))
    s.file_order = _as_str_list(raw.get("file_order"))
    s.daily_note_path = _as_opt_str(raw.get("daily_note_path"))
    s.search = _as_opt_str(raw.get("search"))
    return s


def load_settings(path: Optional[str | Path]) -> Settings:
    """Load settings JSON; a missing or unreadable file yields defaults."""
    if not path:
        return Settings()
    p = Path(path)
    if not p.exists():
        return Settings()
    try:
        raw = json.loads(p.read_text(encoding="utf-8", errors="replace"))
    except (OSError, ValueError) as ex:
        eprint(f"[timeruler.config] WARN: ignoring unreadable settings {p}: {ex}")
        return Settings()
    return settings_from_dict(raw)


def apply_env(settings: Settings) -> Settings:
    """Apply TIMERULER_* environment overrides in place."""
    raw = os.getenv("TIMERULER_DAY_START")
    if raw is not None and raw.strip():
        settings.day_start_hour = _as_hour(raw.strip(), settings.day_start_hour, 0, 23)

    raw = os.getenv("TIMERULER_FIELD_FORMAT")
    if raw is not None and raw.strip().lower() in DIALECTS:
        settings.field_format = raw.strip().lower()

    raw = os.getenv("TIMERULER_EXTEND_BLOCKS")
    if raw is not None:
        settings.extend_blocks = _as_bool(raw, settings.extend_blocks)
    return settings


def save_settings(settings: Settings, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    txt = json.dumps(settings.to_dict(), ensure_ascii=False, indent=2)
    p.write_text(txt + "\n", encoding="utf-8", newline="\n")


__all__ = [
    "SETTINGS_FILENAME",
    "Settings",
    "apply_env",
    "load_settings",
    "save_settings",
    "settings_from_dict",
]
