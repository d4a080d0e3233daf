from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol, Sequence

from ..utils.time import format_jst

MAX_SLOTS_PER_VIDEO = 3
UNLINKED_QUOTA = 3


class SlotLike(Protocol):
    date_time: datetime
    assigned_video_id: Optional[str]


class UnlinkedCandidate(Protocol):
    is_deleted: bool
    event_ids: list[str]
    slot_id: Optional[str]


@dataclass(frozen=True)
class RegistrationCheck:
    allowed: bool
    requires_approval: bool
    reason: Optional[str] = None


def _deny(reason: str, *, requires_approval: bool) -> RegistrationCheck:
    return RegistrationCheck(allowed=False, requires_approval=requires_approval, reason=reason)


def reject_slot_request_shape(
    requested: Sequence[datetime],
    *,
    max_slots: int = MAX_SLOTS_PER_VIDEO,
) -> Optional[RegistrationCheck]:
    """Checks that need no stored state. Returns None when the request is well formed."""
    if not requested:
        return _deny("select at least one slot", requires_approval=True)
    if len(requested) > max_slots:
        return _deny(f"maximum {max_slots} slots per video", requires_approval=True)
    return None


def evaluate_slot_selection(
    slots: Sequence[SlotLike],
    requested: Sequence[datetime],
    *,
    max_gap_minutes: int = 0,
) -> RegistrationCheck:
    """
    Pure validation of a slot selection against one event's ordered slots.
    Every requested time must match a free slot; several slots must sit at
    consecutive indices of ``slots``. Slot registrations always need approval.
    """
    index_by_time = {slot.date_time: index for index, slot in enumerate(slots)}

    for dt in requested:
        index = index_by_time.get(dt)
        if index is None:
            return _deny(f"slot not found: {format_jst(dt)}", requires_approval=True)
        if slots[index].assigned_video_id is not None:
            return _deny(f"slot already assigned: {format_jst(dt)}", requires_approval=True)

    if len(requested) > 1:
        ordered = sorted(requested)
        indices = [index_by_time[dt] for dt in ordered]
        for prev, curr in zip(indices, indices[1:]):
            if curr != prev + 1:
                return _deny("selected slots must be consecutive", requires_approval=True)
        if max_gap_minutes > 0:
            limit = timedelta(minutes=max_gap_minutes)
            for prev_dt, curr_dt in zip(ordered, ordered[1:]):
                if curr_dt - prev_dt > limit:
                    return _deny(
                        "selected slots have a large time gap and cannot be treated as consecutive",
                        requires_approval=True,
                    )

    return RegistrationCheck(allowed=True, requires_approval=True)


def reject_future_start(start_time: datetime, *, now: datetime) -> Optional[RegistrationCheck]:
    if start_time > now:
        return _deny("start time must be in the past for registrations without a slot", requires_approval=False)
    return None


def count_open_unlinked(records: Iterable[UnlinkedCandidate]) -> int:
    """Count non-deleted records with neither slot nor event linkage."""
    return sum(1 for r in records if not r.is_deleted and r.slot_id is None and not r.event_ids)


def evaluate_unlinked_quota(
    author_xid: str,
    existing: int,
    *,
    quota: int = UNLINKED_QUOTA,
) -> RegistrationCheck:
    if existing >= quota:
        return _deny(
            f"author {author_xid} has reached the limit of {quota} registrations "
            f"without an event (current: {existing})",
            requires_approval=False,
        )
    return RegistrationCheck(allowed=True, requires_approval=False)


def can_register_as(*, role: str, approved_xids: Iterable[str], author_xid: str) -> bool:
    if role == "admin":
        return True
    if not author_xid:
        return False
    return author_xid.lower() in {xid.lower() for xid in approved_xids}


def generate_slot_times(
    start: datetime,
    *,
    count: int,
    duration_minutes: int,
    interval_minutes: int = 0,
) -> list[datetime]:
    if count < 1:
        raise ValueError("count must be >= 1")
    if duration_minutes < 1:
        raise ValueError("duration_minutes must be >= 1")
    if interval_minutes < 0:
        raise ValueError("interval_minutes must be >= 0")
    step = timedelta(minutes=duration_minutes + interval_minutes)
    return [start + step * i for i in range(count)]
