"""
リソースキャッシュ

(disaster_id, lat, lon, radius) をキーに周辺リソース一覧を TTL 付きで保持します。
期限切れエントリは参照時に無視されます（能動的な削除は行わない）。
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.logging import get_logger
from src.models.cache import ResourceCacheEntry

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(hours=1)
CACHE_KEY_PREFIX = "resources"

Clock = Callable[[], datetime]


def build_cache_key(disaster_id: str, lat: float, lon: float, radius: int) -> str:
    """キャッシュキーを構築"""
    return f"{disaster_id_prefix(disaster_id)}{float(lat)}:{float(lon)}:{int(radius)}"


def disaster_id_prefix(disaster_id: str) -> str:
    """災害 ID 単位の一括無効化に使うキー接頭辞"""
    return f"{CACHE_KEY_PREFIX}:{disaster_id}:"


class ResourceCache(ABC):
    """リソースキャッシュのインターフェース"""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or datetime.utcnow

    def now(self) -> datetime:
        return self._clock()

    @abstractmethod
    async def get(
        self, disaster_id: str, lat: float, lon: float, radius: int
    ) -> list[dict[str, Any]] | None:
        """有効なエントリがあればリソース一覧を返す（なければ None）"""

    @abstractmethod
    async def put(
        self,
        disaster_id: str,
        lat: float,
        lon: float,
        radius: int,
        resources: list[dict[str, Any]],
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        """エントリを無条件に上書き保存"""

    @abstractmethod
    async def invalidate_all(self, disaster_id: str) -> int:
        """災害に紐づくすべてのエントリを削除し、削除件数を返す"""


class InMemoryResourceCache(ResourceCache):
    """プロセス内メモリのリソースキャッシュ"""

    def __init__(self, clock: Clock | None = None):
        super().__init__(clock)
        self._entries: dict[str, tuple[list[dict[str, Any]], datetime]] = {}

    async def get(
        self, disaster_id: str, lat: float, lon: float, radius: int
    ) -> list[dict[str, Any]] | None:
        entry = self._entries.get(build_cache_key(disaster_id, lat, lon, radius))
        if entry is None:
            return None
        resources, expires_at = entry
        if expires_at <= self.now():
            return None
        return list(resources)

    async def put(
        self,
        disaster_id: str,
        lat: float,
        lon: float,
        radius: int,
        resources: list[dict[str, Any]],
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        key = build_cache_key(disaster_id, lat, lon, radius)
        self._entries[key] = (list(resources), self.now() + ttl)

    async def invalidate_all(self, disaster_id: str) -> int:
        prefix = disaster_id_prefix(disaster_id)
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)


class DatabaseResourceCache(ResourceCache):
    """resource_cache テーブルを使うリソースキャッシュ"""

    def __init__(
        self, session_maker: async_sessionmaker[AsyncSession], clock: Clock | None = None
    ):
        super().__init__(clock)
        self.session_maker = session_maker

    async def get(
        self, disaster_id: str, lat: float, lon: float, radius: int
    ) -> list[dict[str, Any]] | None:
        key = build_cache_key(disaster_id, lat, lon, radius)

        async with self.session_maker() as session:
            stmt = (
                select(ResourceCacheEntry)
                .where(ResourceCacheEntry.key == key)
                .where(ResourceCacheEntry.expires_at > self.now())
            )
            result = await session.execute(stmt)
            cache_entry = result.scalar_one_or_none()

            if cache_entry:
                logger.debug(f"Cache hit for key: {key}")
                return cache_entry.value

            logger.debug(f"Cache miss for key: {key}")
            return None

    async def put(
        self,
        disaster_id: str,
        lat: float,
        lon: float,
        radius: int,
        resources: list[dict[str, Any]],
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        key = build_cache_key(disaster_id, lat, lon, radius)
        now = self.now()

        async with self.session_maker() as session:
            existing_entry = await session.get(ResourceCacheEntry, key)

            if existing_entry:
                # 既存エントリを更新
                existing_entry.value = resources
                existing_entry.created_at = now
                existing_entry.expires_at = now + ttl
            else:
                session.add(
                    ResourceCacheEntry(
                        key=key, value=resources, created_at=now, expires_at=now + ttl
                    )
                )

            await session.commit()
            logger.debug(f"Cached {len(resources)} resources for key: {key}")

    async def invalidate_all(self, disaster_id: str) -> int:
        prefix = disaster_id_prefix(disaster_id)

        async with self.session_maker() as session:
            # LIKE のワイルドカードを含む ID でも前方一致になるようエスケープ
            escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            stmt = delete(ResourceCacheEntry).where(
                ResourceCacheEntry.key.like(f"{escaped}%", escape="\\")
            )
            result = await session.execute(stmt)
            await session.commit()

        logger.debug(f"Invalidated {result.rowcount} cache entries for disaster: {disaster_id}")
        return result.rowcount
