# timeruler/codec/stages.py
"""Pure text stages used by the codec.

Stripping stages are `str -> str` and run in STAGES order on a task's first
line to produce its display title. Extraction helpers pull structured values
out of the same text without modifying it.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from ..model import PRIORITY_BY_KEY

ISO_MATCH = r"\d{4}-\d{2}-\d{2}(?:T\d{2}:\d{2})?"

EMOJI_BY_KEY: Dict[str, str] = {
    "scheduled": "\u23f3",
    "due": "\U0001f4c5",
    "start": "\U0001f6eb",
    "created": "\u2795",
    "completion": "\u2705",
    "highest": "\U0001f53a",
    "high": "\u23eb",
    "medium": "\U0001f53c",
    "low": "\U0001f53d",
    "lowest": "\u23ec",
}
KEY_BY_EMOJI: Dict[str, str] = {v: k for k, v in EMOJI_BY_KEY.items()}

# Rank order used when scanning text for a priority marker.
PRIORITY_MARKERS: Tuple[str, ...] = ("highest", "high", "medium", "low", "lowest")

_VS16 = "\ufe0f?"
_EMOJI_CLASS = "[" + "".join(EMOJI_BY_KEY.values()) + "]"

_WIKI_LINK_RE = re.compile(r"\[\[(?:[^\]|]*\|)?([^\]]*?)\]\]")
_MD_LINK_RE = re.compile(r"\[([^\[\]]*?)\]\([^)]*?\)")
# each bracket style only closes on its own closer
_INLINE_FIELD_RE = re.compile(
    r"\[(?P<bkey>[\w][\w \-]*?)::\s*(?P<bval>[^\]]*?)\s*\]"
    r"|\((?P<pkey>[\w][\w \-]*?)::\s*(?P<pval>[^\)]*?)\s*\)"
)
_TAG_RE = re.compile(r"(?<![\w/#])#[\w\-/]+")
_EMOJI_RE = re.compile(_EMOJI_CLASS + _VS16 + r" ?(?:" + ISO_MATCH + r")?")
_CHECKBOX_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\[(.)\]\s?")
_WS_RE = re.compile(r"\s+")


def first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def split_notes(text: str) -> Optional[str]:
    if "\n" not in text:
        return None
    notes = text.split("\n", 1)[1]
    return notes if notes.strip() else None


def split_checkbox(line: str) -> Tuple[Optional[bool], str]:
    """'- [x] Title' -> (True, 'Title'); lines without a checkbox -> (None, line)."""
    m = _CHECKBOX_RE.match(line)
    if not m:
        return None, line
    return m.group(1) not in (" ", ""), line[m.end():]


# --- stripping stages ---------------------------------------------------------


def unwrap_wiki_links(text: str) -> str:
    return _WIKI_LINK_RE.sub(r"\1", text)


def unwrap_md_links(text: str) -> str:
    return _MD_LINK_RE.sub(r"\1", text)


def unwrap_links(text: str) -> str:
    return unwrap_md_links(unwrap_wiki_links(text))


def strip_inline_fields(text: str) -> str:
    return _INLINE_FIELD_RE.sub("", text)


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def strip_emoji_markers(text: str) -> str:
    return _EMOJI_RE.sub("", text)


def collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


STAGES = (
    unwrap_links,
    strip_inline_fields,
    strip_tags,
    strip_emoji_markers,
    collapse_ws,
)


def clean_title(text: str) -> str:
    out = first_line(text)
    for stage in STAGES:
        out = stage(out)
    return out


# --- extraction ---------------------------------------------------------------


def find_inline_fields(text: str) -> Dict[str, str]:
    """`[key:: value]` and `(key:: value)` annotations; the first occurrence of a key wins."""
    out: Dict[str, str] = {}
    for m in _INLINE_FIELD_RE.finditer(unwrap_wiki_links(first_line(text))):
        if m.group("bkey") is not None:
            key, value = m.group("bkey"), m.group("bval")
        else:
            key, value = m.group("pkey"), m.group("pval")
        key = key.strip()
        if key and key not in out:
            out[key] = value.strip()
    return out


def find_tags(text: str) -> List[str]:
    line = strip_inline_fields(unwrap_links(first_line(text)))
    out: List[str] = []
    for m in _TAG_RE.finditer(line):
        if m.group(0) not in out:
            out.append(m.group(0))
    return out


def find_emoji_date(text: str, key: str) -> Optional[str]:
    emoji = EMOJI_BY_KEY.get(key)
    if not emoji:
        return None
    m = re.search(re.escape(emoji) + _VS16 + r" ?(" + ISO_MATCH + ")", first_line(text))
    return m.group(1) if m else None


def find_priority_marker(text: str) -> Optional[int]:
    line = first_line(text)
    for key in PRIORITY_MARKERS:
        if EMOJI_BY_KEY[key] in line:
            return PRIORITY_BY_KEY[key]
    return None


__all__ = [
    "EMOJI_BY_KEY",
    "ISO_MATCH",
    "KEY_BY_EMOJI",
    "PRIORITY_MARKERS",
    "STAGES",
    "clean_title",
    "collapse_ws",
    "find_emoji_date",
    "find_inline_fields",
    "find_priority_marker",
    "find_tags",
    "first_line",
    "split_checkbox",
    "split_notes",
    "strip_emoji_markers",
    "strip_inline_fields",
    "strip_tags",
    "unwrap_links",
    "unwrap_md_links",
    "unwrap_wiki_links",
]
