import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain.errors import EventNotFoundError, SlotAlreadyAssignedError, SlotInUseError, SlotNotFoundError
from ..domain.repositories import EventRepository
from ..domain.services import (
    MAX_SLOTS_PER_VIDEO,
    RegistrationCheck,
    evaluate_slot_selection,
    generate_slot_times,
    reject_slot_request_shape,
)
from ..models import Event, EventSlot
from ..utils.time import format_jst, utc_now_naive

logger = logging.getLogger(__name__)


async def check_slot_registration(
    event_repo: EventRepository,
    *,
    slot_date_times: Sequence[datetime],
    slot_event_id: str,
    max_slots: int = MAX_SLOTS_PER_VIDEO,
    max_gap_minutes: int = 0,
) -> RegistrationCheck:
    """Advisory check only: reserve_slots repeats the decisive checks in its transaction."""
    rejection = reject_slot_request_shape(slot_date_times, max_slots=max_slots)
    if rejection is not None:
        return rejection
    event = await event_repo.get(slot_event_id)
    if event is None or event.is_deleted:
        return RegistrationCheck(allowed=False, requires_approval=True, reason=f"event not found: {slot_event_id}")
    return evaluate_slot_selection(event.slots, slot_date_times, max_gap_minutes=max_gap_minutes)


async def _load_for_update(event_repo: EventRepository, event_id: str) -> Event:
    event = await event_repo.get_for_update(event_id)
    if event is None or event.is_deleted:
        raise EventNotFoundError(f"event not found: {event_id}")
    return event


async def reserve_slots(
    event_repo: EventRepository,
    *,
    event_id: str,
    slot_date_times: Sequence[datetime],
    video_id: str,
) -> Event:
    """
    Claim every requested slot for ``video_id`` or none of them.
    Must run inside the caller's transaction; any raised error leaves the
    stored slots untouched once that transaction rolls back.
    """
    if not slot_date_times:
        raise ValueError("slot_date_times must not be empty")
    event = await _load_for_update(event_repo, event_id)

    by_time = {slot.date_time: slot for slot in event.slots}
    located: List[EventSlot] = []
    for dt in slot_date_times:
        slot = by_time.get(dt)
        if slot is None:
            raise SlotNotFoundError(f"slot not found: {format_jst(dt)}")
        if slot.assigned_video_id is not None:
            raise SlotAlreadyAssignedError(f"slot already assigned: {format_jst(dt)}")
        located.append(slot)

    for slot in located:
        slot.assigned_video_id = video_id
    await event_repo.save(event)
    logger.info("reserved %d slot(s) of event %s for video %s", len(located), event_id, video_id)
    return event


async def release_slots(
    event_repo: EventRepository,
    *,
    event_id: str,
    video_id: str,
) -> int:
    """Free every slot held by ``video_id``. Nothing to release is not an error."""
    event = await event_repo.get_for_update(event_id)
    if event is None:
        return 0
    released = 0
    for slot in event.slots:
        if slot.assigned_video_id == video_id:
            slot.assigned_video_id = None
            released += 1
    if released:
        await event_repo.save(event)
        logger.info("released %d slot(s) of event %s held by video %s", released, event_id, video_id)
    return released


async def assign_slot(
    event_repo: EventRepository,
    *,
    event_id: str,
    slot_date_time: datetime,
    video_id: Optional[str],
) -> EventSlot:
    """Admin assignment of a single slot; ``video_id=None`` unassigns it."""
    event = await _load_for_update(event_repo, event_id)
    slot = next((s for s in event.slots if s.date_time == slot_date_time), None)
    if slot is None:
        raise SlotNotFoundError(f"slot not found: {format_jst(slot_date_time)}")
    if video_id is not None and slot.assigned_video_id not in (None, video_id):
        raise SlotAlreadyAssignedError(f"slot already assigned: {format_jst(slot_date_time)}")
    if slot.assigned_video_id == video_id:
        return slot
    slot.assigned_video_id = video_id
    await event_repo.save(event)
    return slot


def _renumber(event: Event, slots: Iterable[EventSlot]) -> None:
    ordered = sorted(slots, key=lambda s: s.date_time)
    for position, slot in enumerate(ordered):
        slot.position = position
    event.slots = ordered


async def upsert_event_slots(
    event_repo: EventRepository,
    *,
    event_id: str,
    event_name: Optional[str],
    date_times: Sequence[datetime],
) -> tuple[Event, int, bool]:
    """Create the event or merge new slot times into it. Existing slots keep their assignments."""
    if not date_times:
        raise ValueError("at least one slot time is required")
    created = False
    event = await event_repo.get_for_update(event_id)
    if event is None:
        event = await event_repo.create(event_id=event_id, event_name=event_name or event_id.upper())
        created = True
    elif event_name:
        event.event_name = event_name

    existing = {slot.date_time for slot in event.slots}
    new_slots = [EventSlot(date_time=dt, position=0) for dt in sorted(set(date_times)) if dt not in existing]
    _renumber(event, [*event.slots, *new_slots])
    await event_repo.save(event)
    logger.info("event %s: added %d slot(s), total %d", event_id, len(new_slots), len(event.slots))
    return event, len(new_slots), created


async def generate_event_slots(
    event_repo: EventRepository,
    *,
    event_id: str,
    event_name: Optional[str],
    start: datetime,
    count: int,
    duration_minutes: int,
    interval_minutes: int = 0,
) -> tuple[Event, int, bool]:
    times = generate_slot_times(
        start,
        count=count,
        duration_minutes=duration_minutes,
        interval_minutes=interval_minutes,
    )
    return await upsert_event_slots(event_repo, event_id=event_id, event_name=event_name, date_times=times)


async def delete_slots(
    event_repo: EventRepository,
    *,
    event_id: str,
    date_times: Sequence[datetime],
) -> Event:
    event = await _load_for_update(event_repo, event_id)
    targets = set(date_times)
    doomed = [slot for slot in event.slots if slot.date_time in targets]
    missing = targets - {slot.date_time for slot in doomed}
    if missing:
        raise SlotNotFoundError(f"slot not found: {format_jst(min(missing))}")
    in_use = [slot for slot in doomed if slot.assigned_video_id is not None]
    if in_use:
        raise SlotInUseError(f"slot is assigned and cannot be deleted: {format_jst(in_use[0].date_time)}")
    _renumber(event, [slot for slot in event.slots if slot.date_time not in targets])
    await event_repo.save(event)
    return event


async def soft_delete_event(
    event_repo: EventRepository,
    *,
    event_id: str,
    deleted_by: str,
) -> Event:
    event = await _load_for_update(event_repo, event_id)
    event.is_deleted = True
    event.deleted_at = utc_now_naive()
    event.deleted_by = deleted_by
    await event_repo.save(event)
    return event


async def list_event_summaries(event_repo: EventRepository) -> List[Dict[str, Any]]:
    events = await event_repo.list_active()
    items: List[Dict[str, Any]] = []
    for event in sorted(events, key=lambda e: e.event_id):
        available = sum(1 for slot in event.slots if slot.is_available)
        items.append({"event": event, "available_count": available, "total_count": len(event.slots)})
    return items


async def list_slots(
    event_repo: EventRepository,
    *,
    event_id: Optional[str] = None,
    include_assigned: bool = False,
) -> List[Dict[str, Any]]:
    events = await event_repo.list_active()
    items: List[Dict[str, Any]] = []
    for event in events:
        if event_id is not None and event.event_id != event_id:
            continue
        for slot in event.slots:
            if not include_assigned and not slot.is_available:
                continue
            items.append({"event": event, "slot": slot})
    items.sort(key=lambda item: item["slot"].date_time)
    return items
