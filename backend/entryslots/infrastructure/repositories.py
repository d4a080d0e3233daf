from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from ..domain.errors import SlotConflictError
from ..domain.repositories import EventRepository, VideoRepository
from ..models import Event, Video
from ..utils.time import utc_now_naive


class SqlAlchemyEventRepository(EventRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, event_id: str) -> Event | None:
        result = await self.session.scalar(select(Event).where(Event.event_id == event_id))
        return result if isinstance(result, Event) else None

    async def get_for_update(self, event_id: str) -> Event | None:
        # populate_existing: a copy loaded earlier in this session (e.g. by an
        # advisory check) must not be trusted inside the transaction.
        stmt = (
            select(Event)
            .where(Event.event_id == event_id)
            .options(selectinload(Event.slots))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Event) else None

    async def list_active(self) -> list[Event]:
        stmt = select(Event).where(Event.is_deleted.is_(False)).order_by(Event.event_id)
        return list((await self.session.scalars(stmt)).all())

    async def create(self, *, event_id: str, event_name: str) -> Event:
        now = utc_now_naive()
        event = Event(
            event_id=event_id,
            event_name=event_name,
            is_deleted=False,
            created_at=now,
            updated_at=now,
            slots=[],
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def save(self, event: Event) -> Event:
        # Touching updated_at forces the versioned UPDATE on the event row even
        # when only child slot rows changed.
        event.updated_at = utc_now_naive()
        self.session.add(event)
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise SlotConflictError(f"event {event.event_id} was modified concurrently") from exc
        return event


class SqlAlchemyVideoRepository(VideoRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, video_id: str) -> Video | None:
        result = await self.session.scalar(select(Video).where(Video.id == video_id))
        return result if isinstance(result, Video) else None

    async def get_for_update(self, video_id: str) -> Video | None:
        stmt = (
            select(Video)
            .where(Video.id == video_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Video) else None

    async def add(self, video: Video) -> Video:
        self.session.add(video)
        await self.session.flush()
        return video

    async def save(self, video: Video) -> Video:
        video.updated_at = utc_now_naive()
        self.session.add(video)
        await self.session.flush()
        return video

    async def delete(self, video: Video) -> None:
        await self.session.delete(video)
        await self.session.flush()

    async def list_unlinked_by_author(self, author_xid_lower: str) -> list[Video]:
        stmt = select(Video).where(
            Video.author_xid_lower == author_xid_lower,
            Video.slot_id.is_(None),
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_active(self) -> list[Video]:
        stmt = select(Video).where(Video.is_deleted.is_(False))
        return list((await self.session.scalars(stmt)).all())

    async def list_deleted(self, deleted_before: datetime | None = None) -> list[Video]:
        stmt = select(Video).where(Video.is_deleted.is_(True))
        if deleted_before is not None:
            stmt = stmt.where(Video.deleted_at <= deleted_before)
        stmt = stmt.order_by(Video.deleted_at.desc())
        return list((await self.session.scalars(stmt)).all())
