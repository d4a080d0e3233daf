from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_member_service, get_session, require_admin, utc_naive_or_400
from ..domain.errors import SlotConflictError, VideoNotFoundError, VideoStateError
from ..infrastructure.repositories import SqlAlchemyEventRepository, SqlAlchemyVideoRepository
from ..schemas import DeletedVideoRead, PurgeResult, VideoRead, VideoUpdate
from ..usecases import videos as video_usecase
from ..usecases.members import MemberSuggestionService
from ..utils.audit_log import emit_audit_log_safely
from ..utils.auth import Identity

router = APIRouter(prefix="/admin/videos", tags=["admin-videos"], dependencies=[Depends(require_admin)])


@router.get("/deleted", response_model=List[DeletedVideoRead])
async def list_deleted(
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> list[DeletedVideoRead]:
    video_repo = SqlAlchemyVideoRepository(session)
    rows = await video_usecase.list_deleted_videos(video_repo)
    return [DeletedVideoRead.from_db(video=row["video"], days_since_deleted=row["days_since_deleted"]) for row in rows]


@router.post("/purge", response_model=PurgeResult)
async def purge_deleted(
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> PurgeResult:
    video_repo = SqlAlchemyVideoRepository(session)
    async with session.begin():
        purged = await video_usecase.purge_deleted_videos(
            video_repo,
            retention_days=get_settings().deleted_retention_days,
        )

    member_service.invalidate()
    for snapshot in purged:
        emit_audit_log_safely(
            action="video.purged",
            initiator="system",
            operated_by=admin.user_id,
            video_id=snapshot["id"],
            before=snapshot,
        )
    return PurgeResult(purged=[snapshot["id"] for snapshot in purged])


@router.post("/{video_id}/approve", response_model=VideoRead)
async def approve_video(
    video_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
) -> VideoRead:
    video_repo = SqlAlchemyVideoRepository(session)
    async with session.begin():
        try:
            video, before = await video_usecase.approve_video(video_repo, video_id=video_id)
        except VideoNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except VideoStateError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    emit_audit_log_safely(
        action="video.approved",
        initiator="admin",
        operated_by=admin.user_id,
        video_id=video.id,
        before=before,
        after=video_usecase.video_snapshot(video),
    )
    return VideoRead.from_db(video=video)


@router.patch("/{video_id}", response_model=VideoRead)
async def update_video(
    payload: VideoUpdate,
    video_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> VideoRead:
    changes = payload.changes()
    if "start_time" in changes:
        changes["start_time"] = utc_naive_or_400(changes["start_time"], "start_time")
    video_repo = SqlAlchemyVideoRepository(session)
    async with session.begin():
        try:
            video, before = await video_usecase.update_video(video_repo, video_id=video_id, changes=changes)
        except VideoNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except VideoStateError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    member_service.invalidate()
    emit_audit_log_safely(
        action="video.updated",
        initiator="admin",
        operated_by=admin.user_id,
        video_id=video.id,
        before=before,
        after=video_usecase.video_snapshot(video),
    )
    return VideoRead.from_db(video=video)


@router.delete("/{video_id}", response_model=VideoRead)
async def delete_video(
    video_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> VideoRead:
    video_repo = SqlAlchemyVideoRepository(session)
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            video, before = await video_usecase.soft_delete_video(
                video_repo,
                event_repo,
                video_id=video_id,
                deleted_by=admin.user_id,
            )
        except VideoNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except (VideoStateError, SlotConflictError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    member_service.invalidate()
    emit_audit_log_safely(
        action="video.deleted",
        initiator="admin",
        operated_by=admin.user_id,
        video_id=video.id,
        event_id=before["slot_id"],
        before=before,
        after=video_usecase.video_snapshot(video),
    )
    return VideoRead.from_db(video=video)


@router.post("/{video_id}/restore", response_model=VideoRead)
async def restore_video(
    video_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> VideoRead:
    video_repo = SqlAlchemyVideoRepository(session)
    async with session.begin():
        try:
            video, before = await video_usecase.restore_video(video_repo, video_id=video_id)
        except VideoNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except VideoStateError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    member_service.invalidate()
    emit_audit_log_safely(
        action="video.restored",
        initiator="admin",
        operated_by=admin.user_id,
        video_id=video.id,
        before=before,
        after=video_usecase.video_snapshot(video),
    )
    return VideoRead.from_db(video=video)


@router.delete("/{video_id}/permanent", response_model=PurgeResult)
async def force_delete_video(
    video_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> PurgeResult:
    video_repo = SqlAlchemyVideoRepository(session)
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            before = await video_usecase.force_delete_video(video_repo, event_repo, video_id=video_id)
        except VideoNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except SlotConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    member_service.invalidate()
    emit_audit_log_safely(
        action="video.purged",
        initiator="admin",
        operated_by=admin.user_id,
        video_id=video_id,
        event_id=before["slot_id"],
        before=before,
    )
    return PurgeResult(purged=[video_id])
