import re
from typing import Optional

_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([A-Za-z0-9_-]{11})"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),
)


def extract_youtube_id(url: str) -> Optional[str]:
    if not url:
        return None
    value = url.strip()
    for pattern in _PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return None
