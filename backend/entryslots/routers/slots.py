from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..infrastructure.repositories import SqlAlchemyEventRepository
from ..schemas import EventSummary, SlotRead
from ..usecases import slots as slot_usecase

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/events", response_model=List[EventSummary])
async def list_events(session: AsyncSession = Depends(get_session)) -> list[EventSummary]:
    event_repo = SqlAlchemyEventRepository(session)
    rows = await slot_usecase.list_event_summaries(event_repo)
    return [
        EventSummary(
            event_id=entry["event"].event_id,
            event_name=entry["event"].event_name,
            available_count=entry["available_count"],
            total_count=entry["total_count"],
        )
        for entry in rows
    ]


@router.get("", response_model=List[SlotRead])
async def list_slots(
    event_id: Optional[str] = Query(default=None),
    include_assigned: bool = Query(default=False),
    session: AsyncSession = Depends(get_session),
) -> list[SlotRead]:
    event_repo = SqlAlchemyEventRepository(session)
    rows = await slot_usecase.list_slots(event_repo, event_id=event_id, include_assigned=include_assigned)
    return [SlotRead.from_db(event=entry["event"], slot=entry["slot"]) for entry in rows]
