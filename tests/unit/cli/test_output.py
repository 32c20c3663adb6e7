from __future__ import annotations

import pytest

from tests.conftest import PARENT_ID, make_remote_thread
from thread_sync.badges import BadgeCategory
from thread_sync.cli import output as out
from thread_sync.facade import SyncResult
from thread_sync.sync import SyncMode


@pytest.fixture(autouse=True)
def _no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(out, "_ENABLED", False)


@pytest.mark.parametrize(
    ("category", "marker"),
    [
        (BadgeCategory.MENTIONS_ME, "@"),
        (BadgeCategory.MENTIONS_GROUP, "#"),
        (BadgeCategory.GENERAL_UNREAD, "•"),
        (BadgeCategory.NONE, " "),
    ],
)
def test_badge_markers(category: BadgeCategory, marker: str) -> None:
    assert out.badge(category) == marker


def test_thread_row() -> None:
    item = make_remote_thread("t1", msg="Release notes?\nsecond line", tcount=3)

    row = out.thread_row(item.to_item(PARENT_ID), BadgeCategory.MENTIONS_ME)

    assert row == "  @ [2024-05-01 12:00] alice: Release notes?  3 replies"


def test_thread_row_without_text() -> None:
    item = make_remote_thread("t1", msg="", u=None).to_item(PARENT_ID)

    assert out.thread_row(item, BadgeCategory.NONE) == (
        "    [2024-05-01 12:00] (no text)  0 replies"
    )


def test_color_wraps_in_ansi(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(out, "_ENABLED", True)

    assert out.paint(out.Color.RED, "@") == "\033[31m@\033[0m"


def test_sync_summary(capsys: pytest.CaptureFixture[str]) -> None:
    out.sync_summary(
        SyncResult(parent_id=PARENT_ID, mode=SyncMode.DELTA, thread_count=1200)
    )

    printed = capsys.readouterr().out
    assert "Sync of GENERAL" in printed
    assert "Mode:  delta" in printed
    assert "Threads:  1,200" in printed
    assert "End reached:  no" in printed
