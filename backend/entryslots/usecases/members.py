from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Literal, Optional

from ..domain.repositories import VideoRepository
from ..models import Video
from ..utils.cache import TtlCache

MemberSource = Literal["creator", "member"]

MIN_SIMILARITY = 30


@dataclass(frozen=True)
class MemberMatch:
    name: str
    xid: str
    similarity: int
    source: MemberSource


@dataclass(frozen=True)
class SuggestionResult:
    query: str
    matches: list[MemberMatch]
    best_match: Optional[MemberMatch]
    confidence: int


def levenshtein_distance(a: str, b: str) -> int:
    a, b = a.lower(), b.lower()
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> int:
    """Similarity percentage, 100 for identical strings."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 100
    return round((1 - levenshtein_distance(a, b) / longest) * 100)


def normalize_xid(xid: str) -> str:
    return xid.strip().lstrip("@").lower()


def build_directory(videos: Iterable[Video]) -> list[MemberMatch]:
    seen: dict[str, MemberMatch] = {}

    def _add(name: str, xid: str, source: MemberSource) -> None:
        if not name or not xid:
            return
        normalized = normalize_xid(xid)
        key = f"{name.strip().lower()}|{normalized}"
        if key not in seen:
            seen[key] = MemberMatch(name=name.strip(), xid=normalized, similarity=100, source=source)

    for video in videos:
        _add(video.author_name, video.author_xid, "creator")
        for member in video.members or []:
            _add(str(member.get("name") or ""), str(member.get("xid") or ""), "member")
    return list(seen.values())


def _confidence(matches: list[MemberMatch]) -> int:
    if not matches:
        return 0
    best = matches[0].similarity
    if best == 100:
        # several near-identical entries make a perfect hit ambiguous
        return 50 if sum(1 for m in matches if m.similarity >= 80) >= 2 else 90
    if best >= 80:
        return 45
    if best >= 50:
        return 25
    return 10


class MemberSuggestionService:
    """Name/XID lookups over registered videos, cached until the TTL lapses or a write invalidates it."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._cache: TtlCache[list[MemberMatch]] = TtlCache(ttl_seconds, clock=clock)

    def invalidate(self) -> None:
        self._cache.invalidate()

    async def directory(self, video_repo: VideoRepository) -> list[MemberMatch]:
        async def _load() -> list[MemberMatch]:
            return build_directory(await video_repo.list_active())

        return await self._cache.get_or_load(_load)

    async def suggest(self, video_repo: VideoRepository, query: str, *, limit: int = 10) -> SuggestionResult:
        needle = normalize_xid(query)
        entries = await self.directory(video_repo)
        scored: list[MemberMatch] = []
        for entry in entries:
            score = max(similarity(entry.name.lower(), needle), similarity(entry.xid, needle))
            if score > MIN_SIMILARITY:
                scored.append(replace(entry, similarity=score))
        scored.sort(key=lambda m: (-m.similarity, m.xid))
        matches = scored[:limit]
        return SuggestionResult(
            query=query,
            matches=matches,
            best_match=matches[0] if matches else None,
            confidence=_confidence(matches),
        )
