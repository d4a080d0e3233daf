from datetime import datetime, timezone
from zoneinfo import ZoneInfo

JST = ZoneInfo("Asia/Tokyo")


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_jst(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(JST)


def format_jst(dt: datetime) -> str:
    """Human-readable JST label for a UTC-naive instant, e.g. ``2025/08/29 21:06``."""
    return utc_naive_to_jst(dt).strftime("%Y/%m/%d %H:%M")
