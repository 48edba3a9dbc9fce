"""Time codec: annotated task text <-> Task records."""

from __future__ import annotations

from .parse import RESERVED_FIELDS, parse_task_line, text_to_task
from .serialize import (
    DIALECT_DATAVIEW,
    DIALECT_FULL_CALENDAR,
    DIALECT_TASKS,
    DIALECTS,
    task_to_text,
)
from .stages import STAGES, clean_title

__all__ = [
    "DIALECTS",
    "DIALECT_DATAVIEW",
    "DIALECT_FULL_CALENDAR",
    "DIALECT_TASKS",
    "RESERVED_FIELDS",
    "STAGES",
    "clean_title",
    "parse_task_line",
    "task_to_text",
    "text_to_task",
]
