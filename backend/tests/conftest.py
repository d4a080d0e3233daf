from datetime import datetime
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio
from entryslots.database import build_engine, build_sessionmaker
from entryslots.models import Base, Event, EventSlot
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# 21:00, 21:06 and 21:12 JST on 2025-08-29, stored as UTC-naive
E1_SLOT_TIMES = [
    datetime(2025, 8, 29, 12, 0),
    datetime(2025, 8, 29, 12, 6),
    datetime(2025, 8, 29, 12, 12),
]


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'entryslots.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def seeded_event(sessionmaker: async_sessionmaker[AsyncSession]) -> str:
    now = datetime(2025, 8, 1)
    async with sessionmaker() as session:
        async with session.begin():
            session.add(
                Event(
                    event_id="E1",
                    event_name="Event One",
                    is_deleted=False,
                    created_at=now,
                    updated_at=now,
                    slots=[EventSlot(position=i, date_time=dt) for i, dt in enumerate(E1_SLOT_TIMES)],
                )
            )
    return "E1"
