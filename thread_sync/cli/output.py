"""Terminal rendering for the thread-sync CLI.

Colours are plain ANSI codes, dropped when stdout is not a TTY or when
``NO_COLOR`` is set.  Thread rows and sync summaries are rendered here;
command handlers only pick what to show.
"""

from __future__ import annotations

import os
import sys
from enum import StrEnum

from thread_sync.badges import BadgeCategory
from thread_sync.facade import SyncResult
from thread_sync.models import ThreadItem


class Color(StrEnum):
    BOLD = "1"
    DIM = "2"
    RED = "31"
    GREEN = "32"
    YELLOW = "33"
    CYAN = "36"


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


_ENABLED = _color_enabled()


def paint(color: Color, text: str) -> str:
    if not _ENABLED:
        return text
    return f"\033[{color}m{text}\033[0m"


def dim(text: str) -> str:
    return paint(Color.DIM, text)


# ── Status lines ────────────────────────────────────────────────────


def _status(color: Color, mark: str, msg: str) -> None:
    print(f"  {paint(color, mark)} {msg}")


def success(msg: str) -> None:
    _status(Color.GREEN, "✓", msg)


def warn(msg: str) -> None:
    _status(Color.YELLOW, "!", msg)


def error(msg: str) -> None:
    _status(Color.RED, "✗", msg)


def info(msg: str) -> None:
    print(f"  {msg}")


def header(title: str) -> None:
    print(f"\n{paint(Color.BOLD, title)}")


def kv(key: str, value: object) -> None:
    print(f"  {dim(key + ':')}  {value}")


def next_step(command: str, description: str = "") -> None:
    """Suggest a follow-up command."""
    desc = f"  {dim(description)}" if description else ""
    print(f"    {paint(Color.CYAN, command)}{desc}")


# ── Threads ─────────────────────────────────────────────────────────

_BADGE_MARKS: dict[BadgeCategory, tuple[Color, str]] = {
    BadgeCategory.MENTIONS_ME: (Color.RED, "@"),
    BadgeCategory.MENTIONS_GROUP: (Color.YELLOW, "#"),
    BadgeCategory.GENERAL_UNREAD: (Color.CYAN, "•"),
}


def badge(category: BadgeCategory) -> str:
    """One-character unread marker; a blank for threads without a badge."""
    if category not in _BADGE_MARKS:
        return " "
    color, mark = _BADGE_MARKS[category]
    return paint(color, mark)


def thread_row(item: ThreadItem, category: BadgeCategory) -> str:
    stamp = item.last_message_at.strftime("%Y-%m-%d %H:%M")
    author = f"{item.author}: " if item.author else ""
    title = item.title.splitlines()[0] if item.title else dim("(no text)")
    replies = dim(f"{item.reply_count} replies")
    return f"  {badge(category)} [{stamp}] {author}{title}  {replies}"


def sync_summary(result: SyncResult) -> None:
    header(f"Sync of {result.parent_id}")
    print()
    kv("Mode", result.mode or "none")
    kv("Threads", f"{result.thread_count:,}")
    kv("End reached", "yes" if result.exhausted else "no")
    print()
