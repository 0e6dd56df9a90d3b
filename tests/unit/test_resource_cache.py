"""
リソースキャッシュのユニットテスト
"""

from datetime import datetime, timedelta

import pytest

from src.services.resource_cache import (
    DatabaseResourceCache,
    InMemoryResourceCache,
    build_cache_key,
)

RESOURCES = [
    {"id": "r1", "name": "City Hospital", "type": "hospital"},
    {"id": "r2", "name": "Central Pharmacy", "type": "pharmacy"},
]


class FakeClock:
    """進めることができる時計"""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "database"])
def cache(request, clock, session_maker):
    """両実装で同じ振る舞いを確認する"""
    if request.param == "memory":
        return InMemoryResourceCache(clock=clock)
    return DatabaseResourceCache(session_maker, clock=clock)


def test_build_cache_key():
    """キャッシュキーの形式"""
    assert build_cache_key("d1", 40.5, -73, 10000) == "resources:d1:40.5:-73.0:10000"


@pytest.mark.asyncio
async def test_get_miss_when_absent(cache):
    """未登録キーはミス"""
    assert await cache.get("d1", 40.0, -73.0, 10000) is None


@pytest.mark.asyncio
async def test_put_then_get_returns_stored_list(cache):
    """TTL 内は保存した一覧をそのまま返す"""
    await cache.put("d1", 40.0, -73.0, 10000, RESOURCES, ttl=timedelta(hours=1))

    assert await cache.get("d1", 40.0, -73.0, 10000) == RESOURCES


@pytest.mark.asyncio
async def test_empty_list_is_a_hit(cache):
    """空の一覧もヒットとして扱う"""
    await cache.put("d1", 40.0, -73.0, 10000, [])

    assert await cache.get("d1", 40.0, -73.0, 10000) == []


@pytest.mark.asyncio
async def test_expired_entry_is_a_miss(cache, clock):
    """期限切れ（expires_at 到達時点を含む）はミス"""
    await cache.put("d1", 40.0, -73.0, 10000, RESOURCES, ttl=timedelta(seconds=60))

    clock.advance(seconds=59)
    assert await cache.get("d1", 40.0, -73.0, 10000) == RESOURCES

    clock.advance(seconds=1)
    assert await cache.get("d1", 40.0, -73.0, 10000) is None


@pytest.mark.asyncio
async def test_put_overwrites_and_refreshes_expiry(cache, clock):
    """put は無条件に上書きし有効期限も更新"""
    await cache.put("d1", 40.0, -73.0, 10000, RESOURCES, ttl=timedelta(seconds=60))
    clock.advance(seconds=50)
    await cache.put("d1", 40.0, -73.0, 10000, RESOURCES[:1], ttl=timedelta(seconds=60))
    clock.advance(seconds=30)

    assert await cache.get("d1", 40.0, -73.0, 10000) == RESOURCES[:1]


@pytest.mark.asyncio
async def test_keys_differ_by_coordinates_and_radius(cache):
    """座標・半径が異なれば別エントリ"""
    await cache.put("d1", 40.0, -73.0, 10000, RESOURCES)

    assert await cache.get("d1", 40.1, -73.0, 10000) is None
    assert await cache.get("d1", 40.0, -73.0, 5000) is None


@pytest.mark.asyncio
async def test_invalidate_all_removes_every_key_of_disaster(cache):
    """invalidate_all は座標・半径に関係なく災害の全エントリを削除"""
    await cache.put("d1", 40.0, -73.0, 10000, RESOURCES)
    await cache.put("d1", 41.0, -74.0, 5000, RESOURCES)
    await cache.put("d10", 40.0, -73.0, 10000, RESOURCES)

    removed = await cache.invalidate_all("d1")

    assert removed == 2
    assert await cache.get("d1", 40.0, -73.0, 10000) is None
    assert await cache.get("d1", 41.0, -74.0, 5000) is None
    # 接頭辞が似た別の災害は残る
    assert await cache.get("d10", 40.0, -73.0, 10000) == RESOURCES


@pytest.mark.asyncio
async def test_invalidate_all_treats_wildcards_literally(cache):
    """ID に含まれる LIKE ワイルドカードは文字として扱う"""
    await cache.put("d_1", 40.0, -73.0, 10000, RESOURCES)
    await cache.put("dx1", 40.0, -73.0, 10000, RESOURCES)

    await cache.invalidate_all("d_1")

    assert await cache.get("dx1", 40.0, -73.0, 10000) == RESOURCES
