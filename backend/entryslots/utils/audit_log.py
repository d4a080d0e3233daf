from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "video.created",
    "video.updated",
    "video.approved",
    "video.deleted",
    "video.restored",
    "video.purged",
    "event.slots_updated",
    "event.slot_assigned",
    "event.slots_deleted",
    "event.deleted",
]
AuditInitiator = Literal["user", "admin", "system"]

logger = logging.getLogger(__name__)

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    operated_by: Optional[str],
    video_id: Optional[str] = None,
    event_id: Optional[str] = None,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "operated_by": operated_by,
        "video_id": video_id,
        "event_id": event_id,
        "before": before,
        "after": after,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True, default=str))
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("failed to emit audit log") from exc


def emit_audit_log_safely(**kwargs: Any) -> bool:
    """Fire-and-forget wrapper: an audit failure never undoes or blocks the mutation."""
    try:
        emit_audit_log(**kwargs)
    except RuntimeError:
        logger.warning("audit log dropped for action %s", kwargs.get("action"), exc_info=True)
        return False
    return True
