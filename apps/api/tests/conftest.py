"""
Shared fixtures.

``session_maker`` gives tests a real database (a SQLite file per test,
through aiosqlite) for the behaviour that only a database can show:
optimistic locking and unique constraints under concurrent sessions.
"""

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from admissions.core.database import Base
from admissions.modules.applications.models import NotificationOutbox, StudentApplication
from admissions.modules.referrals.models import ReferralCode


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'admissions.db'}", connect_args={"timeout": 30}
    )

    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all,
            tables=[
                StudentApplication.__table__,
                NotificationOutbox.__table__,
                ReferralCode.__table__,
            ],
        )

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
