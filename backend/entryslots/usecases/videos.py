import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from ..domain.errors import VideoNotFoundError, VideoStateError
from ..domain.repositories import EventRepository, VideoRepository
from ..models import Video
from ..utils.time import utc_now_naive
from .slots import release_slots

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title",
    "description",
    "video_url",
    "start_time",
    "event_ids",
    "author_xid",
    "author_name",
    "members",
)


def video_snapshot(video: Video) -> Dict[str, Any]:
    """JSON-friendly copy of the fields the audit trail keeps."""

    def _iso(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value is not None else None

    return {
        "id": video.id,
        "title": video.title,
        "video_url": video.video_url,
        "start_time": _iso(video.start_time),
        "event_ids": list(video.event_ids or []),
        "author_xid": video.author_xid,
        "slot_id": video.slot_id,
        "slot_count": video.slot_count,
        "is_approved": video.is_approved,
        "is_deleted": video.is_deleted,
        "deleted_at": _iso(video.deleted_at),
        "deleted_by": video.deleted_by,
    }


async def _get_for_update(video_repo: VideoRepository, video_id: str) -> Video:
    video = await video_repo.get_for_update(video_id)
    if video is None:
        raise VideoNotFoundError(f"video not found: {video_id}")
    return video


async def approve_video(
    video_repo: VideoRepository,
    *,
    video_id: str,
) -> tuple[Video, Dict[str, Any]]:
    video = await _get_for_update(video_repo, video_id)
    before = video_snapshot(video)
    if video.is_deleted:
        raise VideoStateError("deleted videos cannot be approved")
    if video.is_approved:
        return video, before
    video.is_approved = True
    video.approved_at = utc_now_naive()
    await video_repo.save(video)
    return video, before


async def update_video(
    video_repo: VideoRepository,
    *,
    video_id: str,
    changes: Mapping[str, Any],
) -> tuple[Video, Dict[str, Any]]:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"fields are not editable: {', '.join(sorted(unknown))}")
    video = await _get_for_update(video_repo, video_id)
    if video.is_deleted:
        raise VideoStateError("deleted videos cannot be edited")
    before = video_snapshot(video)
    for field, value in changes.items():
        setattr(video, field, list(value) if field in ("event_ids", "members") else value)
    if "author_xid" in changes:
        video.author_xid_lower = video.author_xid.lower()
    await video_repo.save(video)
    return video, before


async def soft_delete_video(
    video_repo: VideoRepository,
    event_repo: EventRepository,
    *,
    video_id: str,
    deleted_by: str,
) -> tuple[Video, Dict[str, Any]]:
    """
    Soft-delete a record and free the slots it holds. Both writes belong to
    the caller's transaction, so a slot can't stay bound to a deleted video.
    """
    video = await _get_for_update(video_repo, video_id)
    if video.is_deleted:
        raise VideoStateError(f"video {video_id} is already deleted")
    before = video_snapshot(video)
    if video.slot_id:
        await release_slots(event_repo, event_id=video.slot_id, video_id=video.id)
    video.is_deleted = True
    video.deleted_at = utc_now_naive()
    video.deleted_by = deleted_by
    video.slot_id = None
    await video_repo.save(video)
    logger.info("soft-deleted video %s by %s", video_id, deleted_by)
    return video, before


async def restore_video(
    video_repo: VideoRepository,
    *,
    video_id: str,
) -> tuple[Video, Dict[str, Any]]:
    video = await _get_for_update(video_repo, video_id)
    if not video.is_deleted:
        raise VideoStateError(f"video {video_id} is not deleted")
    before = video_snapshot(video)
    video.is_deleted = False
    video.deleted_at = None
    video.deleted_by = None
    await video_repo.save(video)
    return video, before


async def force_delete_video(
    video_repo: VideoRepository,
    event_repo: EventRepository,
    *,
    video_id: str,
) -> Dict[str, Any]:
    video = await _get_for_update(video_repo, video_id)
    before = video_snapshot(video)
    if video.slot_id:
        await release_slots(event_repo, event_id=video.slot_id, video_id=video.id)
    await video_repo.delete(video)
    logger.info("permanently deleted video %s", video_id)
    return before


def days_since(moment: Optional[datetime], *, now: datetime) -> int:
    if moment is None:
        return 0
    return (now - moment).days


async def list_deleted_videos(
    video_repo: VideoRepository,
    *,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    current = now or utc_now_naive()
    videos = await video_repo.list_deleted()
    return [{"video": v, "days_since_deleted": days_since(v.deleted_at, now=current)} for v in videos]


async def purge_deleted_videos(
    video_repo: VideoRepository,
    *,
    retention_days: int,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Hard-delete records soft-deleted at least ``retention_days`` ago; returns their snapshots."""
    cutoff = (now or utc_now_naive()) - timedelta(days=retention_days)
    purged: List[Dict[str, Any]] = []
    for video in await video_repo.list_deleted(deleted_before=cutoff):
        purged.append(video_snapshot(video))
        await video_repo.delete(video)
    if purged:
        logger.info("purged %d video(s) deleted before %s", len(purged), cutoff.isoformat())
    return purged
