from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String, primary_key=True)

    last_sync_watermark: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    unread_all: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    unread_mentioning_me: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )
    unread_mentioning_group: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )

    avatar_etag: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class ThreadRow(Base):
    __tablename__ = "threads"

    id: Mapped[str] = mapped_column(String, primary_key=True)

    parent_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("subscriptions.id"),
        nullable=False,
    )

    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    msg: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author: Mapped[str | None] = mapped_column(String, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reply_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    replies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    remote_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("idx_threads_parent_id", "parent_id"),
        Index("idx_threads_last_message_at", "last_message_at"),
    )
