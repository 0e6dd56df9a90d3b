"""
リソースサービス

災害地点周辺の支援リソースの自動登録（Overpass → フィルタ → 永続化 → キャッシュ無効化 → 通知）と
周辺リソース検索（キャッシュ → 永続化済みリソースの近傍検索）を提供
"""

import math
from datetime import timedelta
from enum import Enum
from functools import lru_cache
from typing import Any, Optional

from haversine import Unit, haversine
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.logging import get_logger, get_logger_with_context
from src.config.settings import get_settings
from src.database.connection import get_session_maker
from src.models.disaster import Disaster
from src.models.resource import Resource
from src.services.error_handler import (
    ApplicationError,
    DatabaseError,
    ErrorCode,
    OverpassAPIError,
    RecordNotFoundError,
    ValidationError,
)
from src.services.geometry import GeoPoint, normalize_point
from src.services.notifier import (
    DISASTER_APPROVED,
    RESOURCES_UPDATED,
    EventBroadcaster,
    get_broadcaster,
)
from src.services.overpass_client import OverpassClient
from src.services.resource_cache import DatabaseResourceCache, ResourceCache
from src.services.resource_filter import ResourceCandidate, filter_elements

logger = get_logger(__name__)

# 緯度 1 度あたりの距離（メートル）
METERS_PER_DEGREE = 111_320.0

NO_RESOURCES_MESSAGE = "No resources found in area."
OSM_FAILURE_MESSAGE = "Failed to query OSM"


class PopulateStatus(str, Enum):
    """自動登録の終了状態"""

    INVALID = "invalid"
    FAILED = "failed"
    PERSIST_FAILED = "persist_failed"
    DONE = "done"


class AutoPopulateResult(BaseModel):
    """自動登録の結果"""

    status: PopulateStatus
    inserted: Optional[list[dict[str, Any]]] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @property
    def ok(self) -> bool:
        return self.status == PopulateStatus.DONE


class NearbyResult(BaseModel):
    """周辺リソース検索の結果"""

    resources: list[dict[str, Any]] = Field(default_factory=list)
    cached: bool = False


class ResourceService:
    """リソースサービス"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        overpass_client: OverpassClient | None = None,
        cache: ResourceCache | None = None,
        broadcaster: EventBroadcaster | None = None,
    ):
        self.settings = get_settings()
        self.session_maker = session_maker or get_session_maker()
        self.overpass_client = overpass_client or OverpassClient()
        self.cache = cache or DatabaseResourceCache(self.session_maker)
        self.broadcaster = broadcaster or get_broadcaster()

        self.radius = self.settings.resource_radius_meters
        self.cache_ttl = timedelta(seconds=self.settings.resource_cache_ttl_seconds)
        self.max_per_type = self.settings.max_resources_per_type

    async def close(self):
        """クライアントを閉じる"""
        await self.overpass_client.close()

    async def auto_populate(self, disaster_id: str) -> AutoPopulateResult:
        """災害地点周辺のリソースを Overpass から取得して登録

        例外は送出せず、結果オブジェクトで成否を返します。

        Args:
            disaster_id: 災害 ID

        Returns:
            AutoPopulateResult（inserted / message / error のいずれか）
        """
        task_logger = get_logger_with_context(__name__, disaster_id=disaster_id)
        task_logger.info("Resource auto-population triggered")

        try:
            point = await self._get_disaster_location(disaster_id)
        except (RecordNotFoundError, ValidationError) as e:
            task_logger.warning(f"Auto-population rejected: {e.message}")
            return AutoPopulateResult(
                status=PopulateStatus.INVALID, error=e.message, error_code=e.code
            )
        except DatabaseError as e:
            task_logger.error(f"Disaster lookup failed: {e.message}")
            return AutoPopulateResult(
                status=PopulateStatus.FAILED, error=e.message, error_code=e.code
            )

        # 上流サービスへの問い合わせ
        try:
            elements = await self.overpass_client.fetch_elements(point.lat, point.lon, self.radius)
        except OverpassAPIError as e:
            task_logger.error(f"Auto-population failed: {e.message}")
            return AutoPopulateResult(
                status=PopulateStatus.FAILED, error=OSM_FAILURE_MESSAGE, error_code=e.code
            )

        candidates = filter_elements(elements, max_per_type=self.max_per_type)
        task_logger.info(f"Filtered {len(elements)} elements down to {len(candidates)} resources")
        if not candidates:
            return AutoPopulateResult(status=PopulateStatus.DONE, message=NO_RESOURCES_MESSAGE)

        try:
            inserted = await self._insert_resources(disaster_id, candidates)
        except DatabaseError as e:
            task_logger.error(f"Resource bulk insert failed: {e.message}")
            return AutoPopulateResult(
                status=PopulateStatus.PERSIST_FAILED, error=e.message, error_code=e.code
            )

        task_logger.info(
            f"Resources auto-populated: {len(inserted)}",
            extra={"event": "resources_auto_populated", "count": len(inserted)},
        )
        await self._invalidate_cache(disaster_id)
        self.broadcaster.publish(RESOURCES_UPDATED, {"disaster_id": disaster_id})

        return AutoPopulateResult(status=PopulateStatus.DONE, inserted=inserted)

    async def get_nearby(self, disaster_id: str, lat: float, lon: float) -> NearbyResult:
        """災害に紐づく周辺リソースを取得

        キャッシュに有効なエントリがあればそれを返し、なければ登録済みリソースを近傍検索します。
        Overpass への問い合わせは行いません。

        Args:
            disaster_id: 災害 ID
            lat: 検索中心の緯度
            lon: 検索中心の経度

        Returns:
            NearbyResult

        Raises:
            ValidationError: 緯度経度が範囲外の場合
            DatabaseError: 近傍検索に失敗した場合
        """
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            raise ValidationError(
                "Invalid lat/lon query parameters",
                details={"disaster_id": disaster_id, "lat": lat, "lon": lon},
            )

        radius = self.radius

        try:
            cached = await self.cache.get(disaster_id, lat, lon, radius)
        except SQLAlchemyError as e:
            logger.warning(f"Cache lookup failed, falling back to store: {e}")
            cached = None

        if cached is not None:
            logger.info(
                "Resource cache hit",
                extra={"event": "resource_cache_hit", "disaster_id": disaster_id},
            )
            return NearbyResult(resources=cached, cached=True)

        resources = await self._query_nearby(disaster_id, lat, lon, radius)

        try:
            await self.cache.put(disaster_id, lat, lon, radius, resources, ttl=self.cache_ttl)
        except SQLAlchemyError as e:
            logger.warning(f"Cache write failed: {e}")

        logger.info(
            f"Resource query returned {len(resources)} resources",
            extra={"event": "resource_query_success", "disaster_id": disaster_id},
        )
        self.broadcaster.publish(
            RESOURCES_UPDATED, {"disaster_id": disaster_id, "resources": resources}
        )
        return NearbyResult(resources=resources)

    async def delete_resource(self, resource_id: str) -> dict[str, Any]:
        """リソースを削除（管理者操作）

        Raises:
            RecordNotFoundError: リソースが存在しない場合
            DatabaseError: 削除に失敗した場合
        """
        async with self.session_maker() as session:
            resource = await session.get(Resource, resource_id)
            if resource is None:
                raise RecordNotFoundError(
                    "Resource not found", details={"resource_id": resource_id}
                )

            deleted = resource.to_dict()
            try:
                await session.delete(resource)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError("Failed to delete resource", original_error=e) from e

        disaster_id = deleted["disaster_id"]
        logger.info(
            f"Resource deleted: {resource_id}",
            extra={"event": "resource_deleted", "disaster_id": disaster_id},
        )
        await self._invalidate_cache(disaster_id)
        self.broadcaster.publish(RESOURCES_UPDATED, {"disaster_id": disaster_id})
        return deleted

    def notify_disaster_approved(self, disaster_id: str) -> int:
        """災害承認を通知（自動登録ワーカーがバックグラウンドで処理）

        承認処理側から呼び出します。自動登録の完了は待ちません。

        Returns:
            イベントを受け取った購読者数
        """
        logger.info(
            f"Disaster approved: {disaster_id}",
            extra={"event": "disaster_approved", "disaster_id": disaster_id},
        )
        return self.broadcaster.publish(DISASTER_APPROVED, {"disaster_id": disaster_id})

    async def _get_disaster_location(self, disaster_id: str) -> GeoPoint:
        """災害の位置を取得"""
        try:
            async with self.session_maker() as session:
                disaster = await session.get(Disaster, disaster_id)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to load disaster", original_error=e) from e

        if disaster is None:
            raise RecordNotFoundError("Disaster not found", details={"disaster_id": disaster_id})

        point = normalize_point(disaster.location)
        if point is None:
            raise ValidationError(
                "Disaster location missing or invalid", details={"disaster_id": disaster_id}
            )
        return point

    async def _insert_resources(
        self, disaster_id: str, candidates: list[ResourceCandidate]
    ) -> list[dict[str, Any]]:
        """リソース候補を一括登録"""
        resources = [
            Resource(
                disaster_id=disaster_id,
                name=candidate.name,
                type=candidate.type.value,
                latitude=candidate.latitude,
                longitude=candidate.longitude,
                location_name=candidate.location_name,
            )
            for candidate in candidates
        ]

        async with self.session_maker() as session:
            try:
                session.add_all(resources)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(str(e.__cause__ or e), original_error=e) from e

        return [resource.to_dict() for resource in resources]

    async def _query_nearby(
        self, disaster_id: str, lat: float, lon: float, radius: int
    ) -> list[dict[str, Any]]:
        """登録済みリソースから半径内のものを距離順に取得"""
        lat_delta = radius / METERS_PER_DEGREE
        stmt = select(Resource).where(
            Resource.disaster_id == disaster_id,
            Resource.latitude.between(lat - lat_delta, lat + lat_delta),
        )

        # 極付近や日付変更線をまたぐ場合は経度の絞り込みを省略
        cos_lat = math.cos(math.radians(lat))
        if cos_lat > 1e-6:
            lon_delta = radius / (METERS_PER_DEGREE * cos_lat)
            if -180.0 <= lon - lon_delta and lon + lon_delta <= 180.0:
                stmt = stmt.where(Resource.longitude.between(lon - lon_delta, lon + lon_delta))

        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(
                f"Resource query failed: {e}",
                extra={"event": "resource_query_error", "disaster_id": disaster_id},
            )
            raise DatabaseError("Resource lookup failed", original_error=e) from e

        origin = (lat, lon)
        with_distance = [
            (haversine(origin, (row.latitude, row.longitude), unit=Unit.METERS), row)
            for row in rows
        ]
        nearby = sorted(
            (item for item in with_distance if item[0] <= radius), key=lambda item: item[0]
        )
        return [row.to_dict() for _, row in nearby]

    async def _invalidate_cache(self, disaster_id: str) -> None:
        try:
            removed = await self.cache.invalidate_all(disaster_id)
            logger.debug(f"Invalidated {removed} cache entries for disaster: {disaster_id}")
        except SQLAlchemyError as e:
            logger.warning(f"Cache invalidation failed for disaster {disaster_id}: {e}")


@lru_cache()
def get_resource_service() -> ResourceService:
    """ResourceService を取得（シングルトン）"""
    return ResourceService()


def error_for(result: AutoPopulateResult) -> ApplicationError | None:
    """失敗した自動登録結果を ApplicationError に変換"""
    if result.error is None:
        return None
    return ApplicationError(code=result.error_code or ErrorCode.INTERNAL_ERROR, message=result.error)
