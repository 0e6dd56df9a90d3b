"""
リソース API エンドポイント
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.rate_limit import RateLimiter
from src.config.logging import get_logger
from src.services.error_handler import http_status_for
from src.services.geometry import normalize_point
from src.services.resource_service import ResourceService, error_for, get_resource_service

logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1", tags=["Resources"])

nearby_rate_limiter = RateLimiter()


class NearbyResourcesResponse(BaseModel):
    """周辺リソースレスポンススキーマ"""

    resources: list[dict[str, Any]] = Field(description="周辺リソース")
    cached: bool | None = Field(default=None, description="キャッシュから返却された場合 True")


class PopulateResponse(BaseModel):
    """自動登録レスポンススキーマ"""

    status: str = Field(description="終了状態")
    inserted: list[dict[str, Any]] | None = Field(default=None, description="登録されたリソース")
    message: str | None = Field(default=None, description="メッセージ")


class DeleteResourceResponse(BaseModel):
    """リソース削除レスポンススキーマ"""

    message: str = Field(description="メッセージ")
    resource: dict[str, Any] = Field(description="削除されたリソース")


def with_coordinates(resource: dict[str, Any]) -> dict[str, Any]:
    """位置情報から地図表示用の lat / lon を付与"""
    point = normalize_point(resource.get("location"))
    return {
        **resource,
        "lat": point.lat if point else None,
        "lon": point.lon if point else None,
    }


@router.get(
    "/disasters/{disaster_id}/resources",
    response_model=NearbyResourcesResponse,
    response_model_exclude_unset=True,
    dependencies=[Depends(nearby_rate_limiter)],
)
async def get_nearby_resources(
    disaster_id: str,
    lat: float | None = Query(None, description="検索中心の緯度"),
    lon: float | None = Query(None, description="検索中心の経度"),
    service: ResourceService = Depends(get_resource_service),
):
    """災害周辺のリソースを取得

    Args:
        disaster_id: 災害 ID
        lat: 検索中心の緯度
        lon: 検索中心の経度
        service: リソースサービス

    Returns:
        周辺リソース（キャッシュヒット時は cached=True）
    """
    if lat is None or lon is None:
        logger.warning(
            "Resource lookup without coordinates",
            extra={"event": "resource_lookup_missing_coords", "disaster_id": disaster_id},
        )
        return JSONResponse(status_code=400, content={"error": "Missing lat/lon query parameters"})

    logger.info(f"GET /disasters/{disaster_id}/resources: lat={lat}, lon={lon}")
    result = await service.get_nearby(disaster_id, lat, lon)

    resources = [with_coordinates(resource) for resource in result.resources]
    if result.cached:
        return NearbyResourcesResponse(resources=resources, cached=True)
    return NearbyResourcesResponse(resources=resources)


@router.post("/disasters/{disaster_id}/resources/populate", response_model=PopulateResponse)
async def populate_resources(
    disaster_id: str,
    service: ResourceService = Depends(get_resource_service),
):
    """災害周辺のリソースを Overpass から取得して登録（完了まで待機）

    Args:
        disaster_id: 災害 ID
        service: リソースサービス

    Returns:
        登録結果
    """
    logger.info(f"POST /disasters/{disaster_id}/resources/populate")
    result = await service.auto_populate(disaster_id)

    error = error_for(result)
    if error is not None:
        return JSONResponse(
            status_code=http_status_for(error),
            content={"error": error.message, "status": result.status.value},
        )

    return PopulateResponse(
        status=result.status.value, inserted=result.inserted, message=result.message
    )


@router.delete("/resources/{resource_id}", response_model=DeleteResourceResponse)
async def delete_resource(
    resource_id: str,
    service: ResourceService = Depends(get_resource_service),
):
    """リソースを削除（管理者操作）

    Args:
        resource_id: リソース ID
        service: リソースサービス

    Returns:
        削除されたリソース
    """
    logger.info(f"DELETE /resources/{resource_id}")
    deleted = await service.delete_resource(resource_id)
    return DeleteResourceResponse(message="Deleted", resource=deleted)
