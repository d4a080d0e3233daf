from typing import AsyncIterator

import pytest
import pytest_asyncio
from entryslots.config import get_settings
from entryslots.deps import get_session
from entryslots.main import app
from entryslots.usecases.members import MemberSuggestionService
from entryslots.utils.auth import create_access_token
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

SECRET = "testsecret"


def _headers(user_id: str, *, role: str = "user", xids: tuple[str, ...] = ()) -> dict[str, str]:
    token = create_access_token(user_id=user_id, secret=SECRET, role=role, approved_xids=xids)
    return {"Authorization": f"Bearer {token}"}


ADMIN = _headers("admin-1", role="admin")
ALICE = _headers("u-alice", xids=("Alice",))
BOB = _headers("u-bob", xids=("bob",))


@pytest_asyncio.fixture
async def client(
    sessionmaker: async_sessionmaker[AsyncSession], monkeypatch: pytest.MonkeyPatch
) -> AsyncIterator[AsyncClient]:
    monkeypatch.setenv("AUTH_SECRET", SECRET)
    get_settings.cache_clear()

    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.member_service = MemberSuggestionService(600)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    get_settings.cache_clear()


async def _create_event(client: AsyncClient) -> None:
    res = await client.post(
        "/admin/events",
        headers=ADMIN,
        json={
            "event_id": "E1",
            "event_name": "Event One",
            "date_times": [
                "2025-08-29T21:12:00+09:00",
                "2025-08-29T21:00:00+09:00",
                "2025-08-29T21:06:00+09:00",
            ],
        },
    )
    assert res.status_code == 200
    assert res.json() == {"event_id": "E1", "total_slots": 3, "added": 3, "created": True}


async def _free_times(client: AsyncClient) -> list[str]:
    res = await client.get("/slots", params={"event_id": "E1"})
    assert res.status_code == 200
    return [row["date_time"] for row in res.json()]


@pytest.mark.asyncio
async def test_two_videos_book_one_event_end_to_end(client: AsyncClient) -> None:
    await _create_event(client)

    check = await client.post(
        "/registrations/check/slots",
        headers=ALICE,
        json={"slot_event_id": "E1", "slot_date_times": ["2025-08-29T21:00:00+09:00", "2025-08-29T21:06:00+09:00"]},
    )
    assert check.json() == {"allowed": True, "requires_approval": True, "reason": None}

    first = await client.post(
        "/videos/register",
        headers=ALICE,
        json={
            "title": "Opening",
            "video_url": "https://youtu.be/abcdefghij1",
            "author_xid": "alice",
            "author_name": "Alice",
            "slot_event_id": "E1",
            "slot_date_times": ["2025-08-29T21:00:00+09:00", "2025-08-29T21:06:00+09:00"],
        },
    )
    assert first.status_code == 201
    body = first.json()
    assert body["start_time"] == "2025-08-29T21:00:00+09:00"
    assert body["slot_count"] == 2
    assert body["is_approved"] is False
    assert await _free_times(client) == ["2025-08-29T21:12:00+09:00"]

    second = await client.post(
        "/videos/register",
        headers=BOB,
        json={
            "title": "Second",
            "video_url": "https://youtu.be/abcdefghij2",
            "author_xid": "bob",
            "slot_event_id": "E1",
            "slot_date_times": ["2025-08-29T21:06:00+09:00", "2025-08-29T21:12:00+09:00"],
        },
    )
    assert second.status_code == 400
    assert second.json()["detail"] == "slot already assigned: 2025/08/29 21:06"

    third = await client.post(
        "/videos/register",
        headers=BOB,
        json={
            "title": "Second",
            "video_url": "https://youtu.be/abcdefghij2",
            "author_xid": "bob",
            "slot_event_id": "E1",
            "slot_date_time": "2025-08-29T21:12:00+09:00",
        },
    )
    assert third.status_code == 201
    assert await _free_times(client) == []

    summary = await client.get("/slots/events")
    assert summary.json() == [{"event_id": "E1", "event_name": "Event One", "available_count": 0, "total_count": 3}]

    deleted = await client.delete("/admin/videos/abcdefghij1", headers=ADMIN)
    assert deleted.status_code == 200
    assert deleted.json()["slot_id"] is None
    assert await _free_times(client) == ["2025-08-29T21:00:00+09:00", "2025-08-29T21:06:00+09:00"]

    again = await client.delete("/admin/videos/abcdefghij1", headers=ADMIN)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_registration_rules_over_http(client: AsyncClient) -> None:
    await _create_event(client)

    forbidden = await client.post(
        "/videos/register",
        headers=ALICE,
        json={"title": "Not mine", "mode": "no_slot", "video_url": "abcdefghij5", "author_xid": "bob"},
    )
    assert forbidden.status_code == 403

    unauthenticated = await client.post("/videos/register", json={"title": "x"})
    assert unauthenticated.status_code == 401

    missing_event = await client.post(
        "/registrations/check/slots",
        headers=ALICE,
        json={"slot_event_id": "E404", "slot_date_times": ["2025-08-29T21:00:00+09:00"]},
    )
    assert missing_event.json()["reason"] == "event not found: E404"

    future = await client.post(
        "/registrations/check/no-slot",
        headers=ALICE,
        json={"author_xid": "alice", "start_time": "2999-01-01T00:00:00+09:00"},
    )
    assert future.json()["allowed"] is False
    assert future.json()["requires_approval"] is False


@pytest.mark.asyncio
async def test_member_suggestions_follow_registrations(client: AsyncClient) -> None:
    empty = await client.get("/members/suggestions", headers=ALICE, params={"q": "alice"})
    assert empty.status_code == 200
    assert empty.json()["matches"] == []

    res = await client.post(
        "/videos/register",
        headers=ALICE,
        json={
            "title": "Archive",
            "mode": "no_slot",
            "video_url": "https://youtu.be/abcdefghij7",
            "author_xid": "alice",
            "author_name": "Alice",
            "start_time": "2025-01-01T12:00:00+09:00",
            "members": [{"name": "Carol", "xid": "@carol"}],
        },
    )
    assert res.status_code == 201
    assert res.json()["is_approved"] is True

    found = await client.get("/members/suggestions", headers=ALICE, params={"q": "@alice"})
    body = found.json()
    assert body["best_match"] == {"name": "Alice", "xid": "alice", "similarity": 100, "source": "creator"}
    assert body["confidence"] == 90


@pytest.mark.asyncio
async def test_admin_event_management_over_http(client: AsyncClient) -> None:
    await _create_event(client)

    assigned = await client.put(
        "/admin/events/E1/slots/assignment",
        headers=ADMIN,
        json={"slot_date_time": "2025-08-29T21:06:00+09:00", "video_id": "manual01"},
    )
    assert assigned.status_code == 200
    assert assigned.json()["assigned_video_id"] == "manual01"

    in_use = await client.post(
        "/admin/events/E1/slots/delete",
        headers=ADMIN,
        json={"date_times": ["2025-08-29T21:06:00+09:00"]},
    )
    assert in_use.status_code == 409

    removed = await client.post(
        "/admin/events/E1/slots/delete",
        headers=ADMIN,
        json={"date_times": ["2025-08-29T21:00:00+09:00"]},
    )
    assert removed.status_code == 200
    assert [slot["position"] for slot in removed.json()["slots"]] == [0, 1]
    assert removed.json()["assigned_slots"] == 1

    generated = await client.post(
        "/admin/events/generate",
        headers=ADMIN,
        json={"event_id": "E2", "start": "2025-09-01T20:00:00+09:00", "count": 5, "duration_minutes": 5, "interval_minutes": 1},
    )
    assert generated.json() == {"event_id": "E2", "total_slots": 5, "added": 5, "created": True}

    gone = await client.delete("/admin/events/E2", headers=ADMIN)
    assert gone.status_code == 200
    listing = await client.get("/admin/events", headers=ADMIN)
    assert [event["event_id"] for event in listing.json()] == ["E1"]
