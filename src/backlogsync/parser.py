"""Backlog document parser.

The backlog document mixes structured issue blocks with free-form commentary.
Blocks are separated by rule lines (``──────────``); a block becomes a
``BacklogItem`` only when it contains a header line such as::

    🟢 ISSUE 26 – Enforce Email Verification Before Login (P0)

Everything else is ignored without error.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .config import DEFAULT_MARKERS
from .errors import BacklogError
from .logging import get_logger
from .models import BacklogItem

_DASHES = "–—-"  # en dash, em dash, hyphen
_AREA_RE = re.compile(r'^Area:\s*(area:\S+)', re.MULTILINE)
_TOUCHES_RE = re.compile(r'touches:([\w-]+)')


class BlockSource(Protocol):
    def split(self, text: str) -> list[str]: ...  # pragma: no cover - structural only


class SeparatorBlockSource:
    """Split text on lines made only of a repeated rule character."""

    def __init__(self, char: str = "─", min_run: int = 10) -> None:
        if len(char) != 1:
            raise ValueError("separator must be a single character")
        if min_run < 1:
            raise ValueError("separator run length must be positive")
        self.char = char
        self.min_run = min_run
        # \r: CRLF text handed to parse_backlog directly
        self._pattern = re.compile(
            rf'^[ \t]*{re.escape(char)}{{{self.min_run},}}[ \t\r]*$', re.MULTILINE
        )

    def split(self, text: str) -> list[str]:
        return [b.strip() for b in self._pattern.split(text) if b.strip()]


def _header_pattern(markers: Sequence[str]) -> re.Pattern[str]:
    alternatives = '|'.join(re.escape(m) for m in markers)
    return re.compile(
        rf'^({alternatives})\s+ISSUE\s+(\d+)\s+[{_DASHES}]\s+(.+?)\s*\((P\d)\)',
        re.MULTILINE,
    )


def _collision_tags(block: str) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for m in _TOUCHES_RE.finditer(block):
        seen.setdefault(f'touches:{m.group(1)}', None)
    return tuple(seen)


def parse_block(block: str, header: re.Pattern[str]) -> BacklogItem | None:
    m = header.search(block)
    if not m:
        return None
    marker, number_s, title, priority = m.groups()
    area_m = _AREA_RE.search(block)
    return BacklogItem(
        number=int(number_s),
        marker=marker,
        title=title.strip(),
        priority=priority,
        area=area_m.group(1).rstrip() if area_m else None,
        collision_tags=_collision_tags(block),
        body=block[m.end():].lstrip(),
    )


def parse_backlog(
    text: str,
    *,
    source: BlockSource | None = None,
    markers: Sequence[str] = DEFAULT_MARKERS,
) -> list[BacklogItem]:
    """Parse a backlog document into items sorted ascending by number.

    Returns an empty list when nothing matches; deciding whether that is fatal
    is the caller's job (see ``load_backlog``).
    """
    source = source or SeparatorBlockSource()
    header = _header_pattern(markers)
    by_number: dict[int, BacklogItem] = {}
    for block in source.split(text):
        item = parse_block(block, header)
        if item is None:
            continue
        if item.number in by_number:
            get_logger().warning(
                f"Duplicate ISSUE {item.number} in backlog; keeping the first occurrence",
                backlog_number=item.number,
            )
            continue
        by_number[item.number] = item
    return [by_number[n] for n in sorted(by_number)]


def load_backlog(
    path: str | Path,
    *,
    source: BlockSource | None = None,
    markers: Sequence[str] = DEFAULT_MARKERS,
) -> list[BacklogItem]:
    p = Path(path)
    try:
        text = p.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as exc:
        raise BacklogError(f'Could not read {p}: {exc}') from exc
    items = parse_backlog(text, source=source, markers=markers)
    if not items:
        raise BacklogError(f'Parsing {p} returned no issues.')
    return items


def canonical_title(item: BacklogItem, prefix: str = '[AI TASK]') -> str:
    return f'{prefix} {item.marker} ISSUE {item.number} – {item.title} ({item.priority})'


__all__ = [
    "BlockSource",
    "SeparatorBlockSource",
    "parse_block",
    "parse_backlog",
    "load_backlog",
    "canonical_title",
]
