"""
リソース候補のフィルタリング

Overpass の elements をリソース候補に変換し、重複除去・汎用名除外・種別ごとの上限を適用します。
各ステップの順序は固定です（後段は前段の結果を前提とする）。
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from src.config.logging import get_logger
from src.models.resource import ResourceType
from src.services.geometry import GeoPoint, to_geojson_point

logger = get_logger(__name__)

DEFAULT_MAX_PER_TYPE = 20

# カテゴリ名そのままの名前は情報量が少ないため除外する
VAGUE_NAMES = frozenset(category.value for category in ResourceType.categories())


@dataclass(frozen=True)
class ResourceCandidate:
    """永続化前のリソース候補"""

    name: str
    type: ResourceType
    latitude: float
    longitude: float

    @property
    def dedup_key(self) -> str:
        return normalize_name(self.name)

    @property
    def location_name(self) -> str:
        return self.name

    @property
    def location(self) -> dict[str, Any]:
        return to_geojson_point(GeoPoint(lat=self.latitude, lon=self.longitude))


def normalize_name(name: str) -> str:
    """重複判定用に名前を正規化（小文字化・前後空白除去）"""
    return name.strip().lower()


def _resolve_coordinates(element: dict[str, Any]) -> GeoPoint | None:
    lat, lon = element.get("lat"), element.get("lon")
    if lat is None or lon is None:
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return None
    try:
        return GeoPoint(lat=float(lat), lon=float(lon))
    except (TypeError, ValueError):
        return None


def candidates_from_elements(elements: Iterable[dict[str, Any]]) -> list[ResourceCandidate]:
    """Overpass の elements をリソース候補に変換

    座標を解決できない element は除外されます。
    """
    candidates: list[ResourceCandidate] = []
    for element in elements:
        point = _resolve_coordinates(element)
        if point is None:
            continue

        tags = element.get("tags") or {}
        amenity = tags.get("amenity")
        name = next(
            (value for value in (tags.get("name"), amenity) if value and value.strip()),
            "Unknown",
        )
        candidates.append(
            ResourceCandidate(
                name=name,
                type=ResourceType.from_tag(amenity),
                latitude=point.lat,
                longitude=point.lon,
            )
        )
    return candidates


def deduplicate_and_cap(
    candidates: Iterable[ResourceCandidate], max_per_type: int = DEFAULT_MAX_PER_TYPE
) -> list[ResourceCandidate]:
    """重複除去・汎用名除外・種別上限を順に適用

    Args:
        candidates: リソース候補（出現順）
        max_per_type: 種別ごとの最大件数

    Returns:
        フィルタ後のリソース候補（出現順を維持）
    """
    # 1. 正規化名で重複除去（先勝ち）
    seen: set[str] = set()
    unique: list[ResourceCandidate] = []
    for candidate in candidates:
        if candidate.dedup_key in seen:
            continue
        seen.add(candidate.dedup_key)
        unique.append(candidate)

    # 2. カテゴリ名そのままの候補を除外
    specific = [c for c in unique if c.dedup_key not in VAGUE_NAMES]

    # 3. 種別ごとの上限
    counts: Counter[ResourceType] = Counter()
    capped: list[ResourceCandidate] = []
    for candidate in specific:
        if counts[candidate.type] >= max_per_type:
            continue
        counts[candidate.type] += 1
        capped.append(candidate)

    logger.debug(
        f"Filtered candidates: unique={len(unique)}, specific={len(specific)}, kept={len(capped)}"
    )
    return capped


def filter_elements(
    elements: Iterable[dict[str, Any]], max_per_type: int = DEFAULT_MAX_PER_TYPE
) -> list[ResourceCandidate]:
    """Overpass の elements から永続化対象のリソース候補を得る"""
    return deduplicate_and_cap(candidates_from_elements(elements), max_per_type=max_per_type)
