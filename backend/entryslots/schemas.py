from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.services import RegistrationCheck
from .models import Event, EventSlot, Video
from .usecases.members import MemberMatch, SuggestionResult
from .utils.time import JST, utc_naive_to_jst


class SlotRead(BaseModel):
    event_id: str
    event_name: str
    date_time: datetime
    is_available: bool

    @field_serializer("date_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(JST).isoformat()

    @classmethod
    def from_db(cls, *, event: Event, slot: EventSlot) -> "SlotRead":
        return cls(
            event_id=event.event_id,
            event_name=event.event_name,
            date_time=utc_naive_to_jst(slot.date_time),
            is_available=slot.is_available,
        )


class EventSummary(BaseModel):
    event_id: str
    event_name: str
    available_count: int
    total_count: int


class AdminSlotRead(BaseModel):
    position: int
    date_time: datetime
    assigned_video_id: Optional[str]
    is_available: bool

    @field_serializer("date_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(JST).isoformat()


class AdminEventRead(BaseModel):
    event_id: str
    event_name: str
    slots: List[AdminSlotRead]
    total_slots: int
    available_slots: int
    assigned_slots: int
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(JST).isoformat()

    @classmethod
    def from_db(cls, *, event: Event) -> "AdminEventRead":
        slots = [
            AdminSlotRead(
                position=slot.position,
                date_time=utc_naive_to_jst(slot.date_time),
                assigned_video_id=slot.assigned_video_id,
                is_available=slot.is_available,
            )
            for slot in event.slots
        ]
        available = sum(1 for s in slots if s.is_available)
        return cls(
            event_id=event.event_id,
            event_name=event.event_name,
            slots=slots,
            total_slots=len(slots),
            available_slots=available,
            assigned_slots=len(slots) - available,
            created_at=utc_naive_to_jst(event.created_at),
            updated_at=utc_naive_to_jst(event.updated_at),
        )


class EventSlotsUpsert(BaseModel):
    event_id: str = Field(min_length=1, max_length=64)
    event_name: Optional[str] = None
    date_times: List[datetime] = Field(min_length=1)


class EventSlotsGenerate(BaseModel):
    event_id: str = Field(min_length=1, max_length=64)
    event_name: Optional[str] = None
    start: datetime
    count: int = Field(ge=1, le=500)
    duration_minutes: int = Field(ge=1)
    interval_minutes: int = Field(default=0, ge=0)


class EventWriteResult(BaseModel):
    event_id: str
    total_slots: int
    added: int
    created: bool


class SlotAssign(BaseModel):
    slot_date_time: datetime
    video_id: Optional[str] = None


class SlotsDelete(BaseModel):
    date_times: List[datetime] = Field(min_length=1)


class SlotRegistrationCheckRequest(BaseModel):
    slot_event_id: str
    slot_date_times: List[datetime] = Field(default_factory=list)


class NonSlotRegistrationCheckRequest(BaseModel):
    author_xid: str = Field(min_length=1)
    event_ids: List[str] = Field(default_factory=list)
    start_time: datetime


class RegistrationCheckRead(BaseModel):
    allowed: bool
    requires_approval: bool
    reason: Optional[str] = None

    @classmethod
    def from_check(cls, check: RegistrationCheck) -> "RegistrationCheckRead":
        return cls(allowed=check.allowed, requires_approval=check.requires_approval, reason=check.reason)


class MemberIn(BaseModel):
    name: str
    xid: str
    role: str = ""


class RegistrationCreate(BaseModel):
    mode: Optional[Literal["slot", "no_slot"]] = None
    title: str
    video_url: str = ""
    description: str = ""
    author_xid: str = ""
    author_name: str = ""
    members: List[MemberIn] = Field(default_factory=list)
    event_ids: Optional[List[str]] = None
    start_time: Optional[datetime] = None
    slot_event_id: Optional[str] = None
    slot_date_times: List[datetime] = Field(default_factory=list)
    # single-slot form of slot_date_times
    slot_date_time: Optional[datetime] = None

    def requested_slot_times(self) -> List[datetime]:
        if self.slot_date_times:
            return list(self.slot_date_times)
        return [self.slot_date_time] if self.slot_date_time is not None else []


class VideoRead(BaseModel):
    id: str
    title: str
    video_url: str
    start_time: datetime
    event_ids: List[str]
    author_xid: str
    author_name: str
    slot_id: Optional[str]
    slot_count: int
    is_approved: bool
    is_deleted: bool

    @field_serializer("start_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(JST).isoformat()

    @classmethod
    def from_db(cls, *, video: Video) -> "VideoRead":
        return cls(
            id=video.id,
            title=video.title,
            video_url=video.video_url,
            start_time=utc_naive_to_jst(video.start_time),
            event_ids=list(video.event_ids or []),
            author_xid=video.author_xid,
            author_name=video.author_name,
            slot_id=video.slot_id,
            slot_count=video.slot_count,
            is_approved=video.is_approved,
            is_deleted=video.is_deleted,
        )


class VideoUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    start_time: Optional[datetime] = None
    event_ids: Optional[List[str]] = None
    author_xid: Optional[str] = None
    author_name: Optional[str] = None
    members: Optional[List[MemberIn]] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class DeletedVideoRead(BaseModel):
    id: str
    title: str
    deleted_at: Optional[datetime]
    deleted_by: Optional[str]
    days_since_deleted: int

    @field_serializer("deleted_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.astimezone(JST).isoformat() if dt else None

    @classmethod
    def from_db(cls, *, video: Video, days_since_deleted: int) -> "DeletedVideoRead":
        return cls(
            id=video.id,
            title=video.title,
            deleted_at=utc_naive_to_jst(video.deleted_at) if video.deleted_at else None,
            deleted_by=video.deleted_by,
            days_since_deleted=days_since_deleted,
        )


class PurgeResult(BaseModel):
    purged: List[str]


class MemberMatchRead(BaseModel):
    name: str
    xid: str
    similarity: int
    source: str

    @classmethod
    def from_match(cls, match: MemberMatch) -> "MemberMatchRead":
        return cls(name=match.name, xid=match.xid, similarity=match.similarity, source=match.source)


class SuggestionRead(BaseModel):
    query: str
    matches: List[MemberMatchRead]
    best_match: Optional[MemberMatchRead]
    confidence: int

    @classmethod
    def from_result(cls, result: SuggestionResult) -> "SuggestionRead":
        return cls(
            query=result.query,
            matches=[MemberMatchRead.from_match(m) for m in result.matches],
            best_match=MemberMatchRead.from_match(result.best_match) if result.best_match else None,
            confidence=result.confidence,
        )
