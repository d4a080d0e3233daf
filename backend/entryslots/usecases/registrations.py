import logging
import secrets
import time
from datetime import datetime
from typing import Any, Literal, Optional, Sequence

from ..domain.errors import DuplicateVideoError, RegistrationRejectedError
from ..domain.repositories import EventRepository, VideoRepository
from ..domain.services import (
    MAX_SLOTS_PER_VIDEO,
    UNLINKED_QUOTA,
    RegistrationCheck,
    count_open_unlinked,
    evaluate_unlinked_quota,
    reject_future_start,
)
from ..models import Video
from ..utils.time import utc_now_naive
from ..utils.youtube import extract_youtube_id
from .slots import check_slot_registration, reserve_slots

logger = logging.getLogger(__name__)

RegistrationMode = Literal["slot", "no_slot"]


async def count_unlinked_registrations(video_repo: VideoRepository, *, author_xid: str) -> int:
    records = await video_repo.list_unlinked_by_author(author_xid.lower())
    # "event_ids is empty" and the deleted flag are evaluated here, not in the query
    return count_open_unlinked(records)


async def check_non_slot_registration(
    video_repo: VideoRepository,
    *,
    author_xid: str,
    event_ids: Sequence[str],
    start_time: datetime,
    now: Optional[datetime] = None,
    quota: int = UNLINKED_QUOTA,
) -> RegistrationCheck:
    """
    Registrations without a slot document past works only. Tied to an event
    they are unlimited; otherwise an author may hold ``quota`` of them.
    The count is not transactional with the later insert, so the limit is soft.
    """
    rejection = reject_future_start(start_time, now=now or utc_now_naive())
    if rejection is not None:
        return rejection
    if event_ids:
        return RegistrationCheck(allowed=True, requires_approval=False)
    existing = await count_unlinked_registrations(video_repo, author_xid=author_xid)
    return evaluate_unlinked_quota(author_xid, existing, quota=quota)


def resolve_mode(
    mode: Optional[RegistrationMode],
    *,
    slot_event_id: Optional[str],
    slot_date_times: Sequence[datetime],
) -> RegistrationMode:
    if mode is not None:
        return mode
    return "slot" if slot_event_id and slot_date_times else "no_slot"


async def _allocate_video_id(video_repo: VideoRepository, video_url: str) -> str:
    if not video_url:
        return f"draft_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
    video_id = extract_youtube_id(video_url)
    if video_id is None:
        raise RegistrationRejectedError("invalid YouTube URL")
    existing = await video_repo.get(video_id)
    if existing is not None:
        if not existing.is_deleted:
            raise DuplicateVideoError(f"video {video_id} is already registered")
        # a soft-deleted record under the same id is replaced
        await video_repo.delete(existing)
    return video_id


async def register_video(
    event_repo: EventRepository,
    video_repo: VideoRepository,
    *,
    title: str,
    mode: Optional[RegistrationMode] = None,
    video_url: str = "",
    description: str = "",
    author_xid: str = "",
    author_name: str = "",
    members: Optional[list[dict[str, Any]]] = None,
    event_ids: Optional[Sequence[str]] = None,
    start_time: Optional[datetime] = None,
    slot_event_id: Optional[str] = None,
    slot_date_times: Sequence[datetime] = (),
    created_by: Optional[str] = None,
    max_slots: int = MAX_SLOTS_PER_VIDEO,
    max_gap_minutes: int = 0,
    unlinked_quota: int = UNLINKED_QUOTA,
) -> Video:
    """
    Create a registration. Slot mode runs the advisory slot check, inserts the
    record, then claims the slots; the caller's transaction makes the insert
    and the claim succeed or fail together.
    """
    if not title:
        raise RegistrationRejectedError("title is required")
    resolved = resolve_mode(mode, slot_event_id=slot_event_id, slot_date_times=slot_date_times)

    ordered: list[datetime] = []
    if resolved == "slot":
        if not slot_event_id:
            raise RegistrationRejectedError("event id is required for slot registration")
        check = await check_slot_registration(
            event_repo,
            slot_date_times=slot_date_times,
            slot_event_id=slot_event_id,
            max_slots=max_slots,
            max_gap_minutes=max_gap_minutes,
        )
        if not check.allowed:
            raise RegistrationRejectedError(check.reason or "slot registration rejected")
        ordered = sorted(slot_date_times)
        effective_start = ordered[0]
        final_event_ids = list(event_ids) if event_ids else [slot_event_id]
        approved = False
    else:
        if not video_url:
            raise RegistrationRejectedError("video URL is required for registration without a slot")
        if start_time is None:
            raise RegistrationRejectedError("start time is required")
        check = await check_non_slot_registration(
            video_repo,
            author_xid=author_xid,
            event_ids=event_ids or [],
            start_time=start_time,
            quota=unlinked_quota,
        )
        if not check.allowed:
            raise RegistrationRejectedError(check.reason or "registration rejected")
        effective_start = start_time
        final_event_ids = list(event_ids or [])
        approved = True

    video_id = await _allocate_video_id(video_repo, video_url)
    now = utc_now_naive()
    video = Video(
        id=video_id,
        title=title,
        video_url=video_url,
        description=description,
        start_time=effective_start,
        event_ids=final_event_ids,
        author_xid=author_xid,
        author_xid_lower=author_xid.lower(),
        author_name=author_name,
        members=list(members or []),
        slot_id=slot_event_id if ordered else None,
        slot_count=len(ordered),
        is_approved=approved,
        approved_at=now if approved else None,
        is_deleted=False,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    await video_repo.add(video)

    if ordered and slot_event_id:
        await reserve_slots(event_repo, event_id=slot_event_id, slot_date_times=ordered, video_id=video.id)

    logger.info("registered video %s (mode=%s, approved=%s)", video.id, resolved, approved)
    return video
