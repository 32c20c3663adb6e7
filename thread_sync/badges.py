"""Unread badge classification for thread list rows."""

from __future__ import annotations

from enum import StrEnum

from thread_sync.models import ParentSubscription


class BadgeCategory(StrEnum):
    NONE = "none"
    MENTIONS_ME = "mentions_me"
    MENTIONS_GROUP = "mentions_group"
    GENERAL_UNREAD = "general_unread"


def classify(
    item_id: str, subscription: ParentSubscription | None
) -> BadgeCategory:
    """Badge for one thread given the latest subscription snapshot.

    Direct mentions beat group mentions, which beat plain unread.
    """
    if subscription is None:
        return BadgeCategory.NONE
    if item_id in subscription.unread_mentioning_me:
        return BadgeCategory.MENTIONS_ME
    if item_id in subscription.unread_mentioning_group:
        return BadgeCategory.MENTIONS_GROUP
    if item_id in subscription.unread_all:
        return BadgeCategory.GENERAL_UNREAD
    return BadgeCategory.NONE
