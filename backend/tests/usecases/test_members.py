from dataclasses import dataclass, field
from typing import Any

import pytest
from entryslots.usecases import members as uc


@dataclass
class FakeVideo:
    author_name: str
    author_xid: str
    members: list[dict[str, Any]] = field(default_factory=list)


class FakeVideoRepo:
    def __init__(self, videos: list[FakeVideo]) -> None:
        self.videos = videos
        self.loads = 0

    async def list_active(self) -> list[FakeVideo]:
        self.loads += 1
        return list(self.videos)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_levenshtein_and_similarity() -> None:
    assert uc.levenshtein_distance("kitten", "sitting") == 3
    assert uc.levenshtein_distance("ABC", "abc") == 0
    assert uc.similarity("", "") == 100
    assert uc.similarity("abcd", "abcf") == 75


def test_build_directory_deduplicates_authors_and_members() -> None:
    videos = [
        FakeVideo("Alice", "@Alice", members=[{"name": "Bob", "xid": "bob"}]),
        FakeVideo("alice", "alice", members=[{"name": "Bob", "xid": "@BOB"}, {"name": "", "xid": "ghost"}]),
    ]
    directory = uc.build_directory(videos)  # type: ignore[arg-type]
    assert [(m.name, m.xid, m.source) for m in directory] == [("Alice", "alice", "creator"), ("Bob", "bob", "member")]


@pytest.mark.asyncio
async def test_suggest_ranks_exact_match_first() -> None:
    repo = FakeVideoRepo([FakeVideo("Alice", "alice_x"), FakeVideo("Alicia", "alicia"), FakeVideo("Zed", "zzz")])
    service = uc.MemberSuggestionService(600)

    result = await service.suggest(repo, "@Alice_X")  # type: ignore[arg-type]

    assert result.best_match is not None
    assert result.best_match.xid == "alice_x"
    assert result.best_match.similarity == 100
    assert result.confidence == 90
    assert "zzz" not in [m.xid for m in result.matches]


@pytest.mark.asyncio
async def test_suggest_without_matches_has_zero_confidence() -> None:
    repo = FakeVideoRepo([FakeVideo("Alice", "alice")])
    service = uc.MemberSuggestionService(600)

    result = await service.suggest(repo, "qqqqqqqq")  # type: ignore[arg-type]

    assert result.matches == []
    assert result.best_match is None
    assert result.confidence == 0


@pytest.mark.asyncio
async def test_directory_is_cached_until_ttl_or_invalidate() -> None:
    repo = FakeVideoRepo([FakeVideo("Alice", "alice")])
    clock = FakeClock()
    service = uc.MemberSuggestionService(60, clock=clock)

    await service.directory(repo)  # type: ignore[arg-type]
    await service.directory(repo)  # type: ignore[arg-type]
    assert repo.loads == 1

    service.invalidate()
    await service.directory(repo)  # type: ignore[arg-type]
    assert repo.loads == 2

    clock.now = 61
    await service.directory(repo)  # type: ignore[arg-type]
    assert repo.loads == 3
