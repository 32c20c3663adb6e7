from __future__ import annotations

import pytest

from thread_sync.badges import BadgeCategory, classify
from thread_sync.models import ParentSubscription

SUBSCRIPTION = ParentSubscription(
    id="GENERAL",
    unread_all=frozenset({"all", "group", "me", "both"}),
    unread_mentioning_group=frozenset({"group", "both"}),
    unread_mentioning_me=frozenset({"me", "both"}),
)


@pytest.mark.parametrize(
    ("thread_id", "expected"),
    [
        ("me", BadgeCategory.MENTIONS_ME),
        ("both", BadgeCategory.MENTIONS_ME),
        ("group", BadgeCategory.MENTIONS_GROUP),
        ("all", BadgeCategory.GENERAL_UNREAD),
        ("read", BadgeCategory.NONE),
    ],
)
def test_precedence(thread_id: str, expected: BadgeCategory) -> None:
    assert classify(thread_id, SUBSCRIPTION) is expected


def test_mention_without_unread_entry_still_counts() -> None:
    subscription = ParentSubscription(
        id="GENERAL", unread_mentioning_group=frozenset({"x"})
    )
    assert classify("x", subscription) is BadgeCategory.MENTIONS_GROUP


def test_no_subscription_means_no_badge() -> None:
    assert classify("me", None) is BadgeCategory.NONE
