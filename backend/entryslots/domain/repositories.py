from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models import Event, Video


class EventRepository(Protocol):
    async def get(self, event_id: str) -> Event | None: ...

    async def get_for_update(self, event_id: str) -> Event | None:
        """Re-read the event inside the current transaction, locking its row."""
        ...

    async def list_active(self) -> list[Event]: ...

    async def create(self, *, event_id: str, event_name: str) -> Event: ...

    async def save(self, event: Event) -> Event:
        """Flush slot changes. Raises SlotConflictError if another writer committed first."""
        ...


class VideoRepository(Protocol):
    async def get(self, video_id: str) -> Video | None: ...

    async def get_for_update(self, video_id: str) -> Video | None: ...

    async def add(self, video: Video) -> Video: ...

    async def save(self, video: Video) -> Video: ...

    async def delete(self, video: Video) -> None: ...

    async def list_unlinked_by_author(self, author_xid_lower: str) -> list[Video]:
        """Records of the author with no slot linkage. Deleted records are included."""
        ...

    async def list_active(self) -> list[Video]: ...

    async def list_deleted(self, deleted_before: datetime | None = None) -> list[Video]: ...
