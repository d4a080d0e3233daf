from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, String, Text


class Base(DeclarativeBase):
    pass


class Event(Base):
    """One submission event and its ordered slot array.

    The event row is the unit of mutual exclusion for slot mutations: writers
    lock it and every commit bumps ``version``, so a concurrent writer holding
    a stale copy fails its flush instead of overwriting assignments.
    """

    __tablename__ = "events"

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    slots: Mapped[list["EventSlot"]] = relationship(
        back_populates="event",
        order_by="EventSlot.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class EventSlot(Base):
    __tablename__ = "event_slots"
    __table_args__ = (
        UniqueConstraint("event_id", "date_time", name="uq_event_slots_time"),
        Index("idx_event_slots_video", "assigned_video_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.event_id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    date_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    assigned_video_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    event: Mapped["Event"] = relationship(back_populates="slots")

    @property
    def is_available(self) -> bool:
        return self.assigned_video_id is None


class Video(Base):
    __tablename__ = "videos"
    __table_args__ = (
        Index("idx_videos_author_lower", "author_xid_lower"),
        Index("idx_videos_slot", "slot_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    video_url: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    event_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    author_xid: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    author_xid_lower: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    author_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    members: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    slot_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    slot_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
