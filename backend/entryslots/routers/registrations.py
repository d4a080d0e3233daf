from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_identity, get_member_service, get_session, utc_naive_list_or_400, utc_naive_or_400
from ..domain.errors import (
    DuplicateVideoError,
    EventNotFoundError,
    RegistrationRejectedError,
    SlotConflictError,
    SlotNotFoundError,
)
from ..domain.services import can_register_as
from ..infrastructure.repositories import SqlAlchemyEventRepository, SqlAlchemyVideoRepository
from ..schemas import (
    NonSlotRegistrationCheckRequest,
    RegistrationCheckRead,
    RegistrationCreate,
    SlotRegistrationCheckRequest,
    VideoRead,
)
from ..usecases import registrations as registration_usecase
from ..usecases import slots as slot_usecase
from ..usecases.members import MemberSuggestionService
from ..usecases.videos import video_snapshot
from ..utils.audit_log import emit_audit_log_safely
from ..utils.auth import Identity

router = APIRouter(prefix="", tags=["registrations"])


@router.post("/registrations/check/slots", response_model=RegistrationCheckRead)
async def check_slots(
    payload: SlotRegistrationCheckRequest,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> RegistrationCheckRead:
    settings = get_settings()
    event_repo = SqlAlchemyEventRepository(session)
    check = await slot_usecase.check_slot_registration(
        event_repo,
        slot_date_times=utc_naive_list_or_400(payload.slot_date_times, "slot_date_times"),
        slot_event_id=payload.slot_event_id,
        max_slots=settings.max_slots_per_video,
        max_gap_minutes=settings.slot_max_gap_minutes,
    )
    return RegistrationCheckRead.from_check(check)


@router.post("/registrations/check/no-slot", response_model=RegistrationCheckRead)
async def check_no_slot(
    payload: NonSlotRegistrationCheckRequest,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> RegistrationCheckRead:
    settings = get_settings()
    video_repo = SqlAlchemyVideoRepository(session)
    check = await registration_usecase.check_non_slot_registration(
        video_repo,
        author_xid=payload.author_xid,
        event_ids=payload.event_ids,
        start_time=utc_naive_or_400(payload.start_time, "start_time"),
        quota=settings.unlinked_quota,
    )
    return RegistrationCheckRead.from_check(check)


@router.post("/videos/register", response_model=VideoRead, status_code=status.HTTP_201_CREATED)
async def register_video(
    payload: RegistrationCreate,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> VideoRead:
    if not can_register_as(role=identity.role, approved_xids=identity.approved_xids, author_xid=payload.author_xid):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="author XID is not approved for this account")

    settings = get_settings()
    slot_times = utc_naive_list_or_400(payload.requested_slot_times(), "slot_date_times")
    start_time = utc_naive_or_400(payload.start_time, "start_time") if payload.start_time else None
    event_repo = SqlAlchemyEventRepository(session)
    video_repo = SqlAlchemyVideoRepository(session)
    async with session.begin():
        try:
            video = await registration_usecase.register_video(
                event_repo,
                video_repo,
                title=payload.title,
                mode=payload.mode,
                video_url=payload.video_url,
                description=payload.description,
                author_xid=payload.author_xid,
                author_name=payload.author_name,
                members=[m.model_dump() for m in payload.members],
                event_ids=payload.event_ids,
                start_time=start_time,
                slot_event_id=payload.slot_event_id,
                slot_date_times=slot_times,
                created_by=identity.user_id,
                max_slots=settings.max_slots_per_video,
                max_gap_minutes=settings.slot_max_gap_minutes,
                unlinked_quota=settings.unlinked_quota,
            )
        except RegistrationRejectedError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.reason)
        except (EventNotFoundError, SlotNotFoundError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except (DuplicateVideoError, SlotConflictError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    member_service.invalidate()
    emit_audit_log_safely(
        action="video.created",
        initiator="admin" if identity.is_admin else "user",
        operated_by=identity.user_id,
        video_id=video.id,
        event_id=video.slot_id,
        after=video_snapshot(video),
    )
    return VideoRead.from_db(video=video)
