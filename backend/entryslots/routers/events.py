from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session, require_admin, utc_naive_list_or_400, utc_naive_or_400
from ..domain.errors import EventNotFoundError, SlotConflictError, SlotInUseError, SlotNotFoundError
from ..infrastructure.repositories import SqlAlchemyEventRepository
from ..models import Event
from ..schemas import (
    AdminEventRead,
    AdminSlotRead,
    EventSlotsGenerate,
    EventSlotsUpsert,
    EventWriteResult,
    SlotAssign,
    SlotsDelete,
)
from ..usecases import slots as slot_usecase
from ..utils.audit_log import emit_audit_log_safely
from ..utils.auth import Identity
from ..utils.time import utc_naive_to_jst

router = APIRouter(prefix="/admin/events", tags=["admin-events"], dependencies=[Depends(require_admin)])


def _write_result(event: Event, added: int, created: bool) -> EventWriteResult:
    return EventWriteResult(event_id=event.event_id, total_slots=len(event.slots), added=added, created=created)


def _audit_slots_updated(admin: Identity, result: EventWriteResult) -> None:
    emit_audit_log_safely(
        action="event.slots_updated",
        initiator="admin",
        operated_by=admin.user_id,
        event_id=result.event_id,
        extra={"added": result.added, "total_slots": result.total_slots, "created": result.created},
    )


@router.get("", response_model=List[AdminEventRead])
async def list_events(
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> list[AdminEventRead]:
    event_repo = SqlAlchemyEventRepository(session)
    rows = await slot_usecase.list_event_summaries(event_repo)
    return [AdminEventRead.from_db(event=entry["event"]) for entry in rows]


@router.post("", response_model=EventWriteResult)
async def upsert_event(
    payload: EventSlotsUpsert,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> EventWriteResult:
    date_times = utc_naive_list_or_400(payload.date_times, "date_times")
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            event, added, created = await slot_usecase.upsert_event_slots(
                event_repo,
                event_id=payload.event_id,
                event_name=payload.event_name,
                date_times=date_times,
            )
        except SlotConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        result = _write_result(event, added, created)

    _audit_slots_updated(admin, result)
    return result


@router.post("/generate", response_model=EventWriteResult)
async def generate_event(
    payload: EventSlotsGenerate,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> EventWriteResult:
    start = utc_naive_or_400(payload.start, "start")
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            event, added, created = await slot_usecase.generate_event_slots(
                event_repo,
                event_id=payload.event_id,
                event_name=payload.event_name,
                start=start,
                count=payload.count,
                duration_minutes=payload.duration_minutes,
                interval_minutes=payload.interval_minutes,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        except SlotConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        result = _write_result(event, added, created)

    _audit_slots_updated(admin, result)
    return result


@router.put("/{event_id}/slots/assignment", response_model=AdminSlotRead)
async def assign_slot(
    payload: SlotAssign,
    event_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> AdminSlotRead:
    slot_date_time = utc_naive_or_400(payload.slot_date_time, "slot_date_time")
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            slot = await slot_usecase.assign_slot(
                event_repo,
                event_id=event_id,
                slot_date_time=slot_date_time,
                video_id=payload.video_id,
            )
        except (EventNotFoundError, SlotNotFoundError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except SlotConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        read = AdminSlotRead(
            position=slot.position,
            date_time=utc_naive_to_jst(slot.date_time),
            assigned_video_id=slot.assigned_video_id,
            is_available=slot.is_available,
        )

    emit_audit_log_safely(
        action="event.slot_assigned",
        initiator="admin",
        operated_by=admin.user_id,
        event_id=event_id,
        video_id=payload.video_id,
        extra={"slot_date_time": read.date_time.isoformat()},
    )
    return read


@router.post("/{event_id}/slots/delete", response_model=AdminEventRead)
async def delete_slots(
    payload: SlotsDelete,
    event_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> AdminEventRead:
    date_times = utc_naive_list_or_400(payload.date_times, "date_times")
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            event = await slot_usecase.delete_slots(event_repo, event_id=event_id, date_times=date_times)
        except (EventNotFoundError, SlotNotFoundError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except (SlotInUseError, SlotConflictError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        read = AdminEventRead.from_db(event=event)

    emit_audit_log_safely(
        action="event.slots_deleted",
        initiator="admin",
        operated_by=admin.user_id,
        event_id=event_id,
        extra={"deleted": len(date_times), "total_slots": read.total_slots},
    )
    return read


@router.delete("/{event_id}", response_model=AdminEventRead)
async def delete_event(
    event_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> AdminEventRead:
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            event = await slot_usecase.soft_delete_event(event_repo, event_id=event_id, deleted_by=admin.user_id)
        except EventNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except SlotConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        read = AdminEventRead.from_db(event=event)

    emit_audit_log_safely(action="event.deleted", initiator="admin", operated_by=admin.user_id, event_id=event_id)
    return read
