"""
Overpass API クライアント

OpenStreetMap の Overpass API から災害地点周辺の支援施設（POI）を取得
"""

import asyncio
from typing import Any

import httpx

from src.config.logging import get_logger
from src.config.settings import get_settings
from src.models.resource import ResourceType
from src.services.error_handler import OverpassAPIError

logger = get_logger(__name__)


class OverpassClient:
    """Overpass API クライアント"""

    ELEMENT_KINDS = ("node", "way", "relation")

    def __init__(self):
        self.settings = get_settings()
        self.api_url = self.settings.overpass_api_url
        self.max_retries = max(self.settings.overpass_max_retries, 1)
        self.retry_backoff = self.settings.overpass_retry_backoff
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTPクライアントを取得（遅延初期化）"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "text/plain"},
                timeout=httpx.Timeout(self.settings.overpass_timeout),
            )
        return self._client

    async def close(self):
        """HTTPクライアントをクローズ"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_query(self, lat: float, lon: float, radius_meters: int) -> str:
        """Overpass QL クエリを構築

        Args:
            lat: 緯度
            lon: 経度
            radius_meters: 検索半径（メートル）

        Returns:
            Overpass QL クエリ文字列
        """
        amenities = "|".join(category.value for category in ResourceType.categories())
        timeout = int(self.settings.overpass_timeout)
        selectors = "\n".join(
            f'  {kind}["amenity"~"{amenities}"](around:{radius_meters},{lat},{lon});'
            for kind in self.ELEMENT_KINDS
        )
        return f"[out:json][timeout:{timeout}];\n(\n{selectors}\n);\nout center;\n"

    async def fetch_elements(
        self, lat: float, lon: float, radius_meters: int
    ) -> list[dict[str, Any]]:
        """周辺の POI を取得

        失敗時は試行回数に比例した間隔（1s, 2s, ...）を空けてリトライします。

        Args:
            lat: 緯度
            lon: 経度
            radius_meters: 検索半径（メートル）

        Returns:
            Overpass の elements（node / way / relation）のリスト

        Raises:
            OverpassAPIError: すべての試行が失敗した場合
        """
        query = self.build_query(lat, lon, radius_meters)
        client = await self._get_client()

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await client.post(self.api_url, content=query)
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Overpass response is not a JSON object")
                elements = data.get("elements") or []

                logger.info(
                    f"Overpass returned {len(elements)} elements",
                    extra={"event": "osm_query_success", "attempt": attempt},
                )
                return elements

            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                status_code = (
                    e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                )
                logger.warning(
                    f"Overpass query failed, retry {attempt}/{self.max_retries}: {e!r}",
                    extra={
                        "event": "osm_query_retry",
                        "attempt": attempt,
                        "status_code": status_code,
                    },
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_backoff * attempt)

        logger.error(
            f"Overpass query failed after {self.max_retries} attempts: {last_error!r}",
            extra={"event": "osm_query_failed"},
        )
        raise OverpassAPIError(
            "Failed to query OSM",
            details={"attempts": self.max_retries},
            original_error=last_error,
        )
