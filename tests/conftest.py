"""Test configuration"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.database.connection import Base
# Import all models to ensure they are registered
from src.models.cache import ResourceCacheEntry  # noqa: F401
from src.models.disaster import Disaster, DisasterStatus
from src.models.resource import Resource  # noqa: F401


@pytest.fixture
async def session_maker():
    """テスト用セッションメーカー（インメモリ SQLite）"""
    # 複数セッションで同じインメモリ DB を共有する
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def test_db(session_maker):
    """テスト用データベースセッション"""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def disaster(test_db):
    """位置情報付きの承認済み災害"""
    disaster = Disaster(
        title="Flood in Riverside",
        location={"type": "Point", "coordinates": [-73.9857, 40.7484]},
        status=DisasterStatus.APPROVED.value,
    )
    test_db.add(disaster)
    await test_db.commit()
    await test_db.refresh(disaster)
    return disaster
