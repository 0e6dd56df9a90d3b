"""
ジオメトリ正規化

GeoJSON Point オブジェクトまたは WKB (16 進文字列) を {lat, lon} に変換します。
不正な入力では例外を送出せず None を返します。
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from shapely import wkb
from shapely.errors import ShapelyError
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry


@dataclass(frozen=True)
class GeoPoint:
    """緯度経度ペア"""

    lat: float
    lon: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def _is_coordinate(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _to_geo_point(geometry: BaseGeometry) -> GeoPoint | None:
    """2D の Point のみ GeoPoint に変換"""
    if geometry.geom_type != "Point" or geometry.is_empty or geometry.has_z:
        return None
    lon, lat = float(geometry.x), float(geometry.y)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return GeoPoint(lat=lat, lon=lon)


def _from_geojson(value: Mapping) -> GeoPoint | None:
    coordinates = value.get("coordinates")
    if isinstance(coordinates, (str, bytes)) or not isinstance(coordinates, Sequence):
        return None
    if len(coordinates) < 2 or not all(_is_coordinate(c) for c in coordinates):
        return None

    try:
        geometry = shape({"type": value.get("type", "Point"), "coordinates": list(coordinates)})
    except (ShapelyError, TypeError, ValueError):
        return None
    return _to_geo_point(geometry)


def _from_wkb_hex(value: str) -> GeoPoint | None:
    hex_string = value.strip()
    if hex_string[:2].lower() == "0x":
        hex_string = hex_string[2:]

    try:
        data = bytes.fromhex(hex_string)
    except ValueError:
        return None

    # リトルエンディアンのみ対応
    if not data or data[0] != 1:
        return None

    try:
        geometry = wkb.loads(data)
    except (ShapelyError, TypeError, ValueError):
        return None
    return _to_geo_point(geometry)


def normalize_point(value: Any) -> GeoPoint | None:
    """位置情報を GeoPoint に正規化

    Args:
        value: ``{"type": "Point", "coordinates": [lon, lat]}`` 形式のオブジェクト
            （type 省略時は Point とみなす）、
            または 2D Point の WKB/EWKB 16 進文字列（リトルエンディアン）

    Returns:
        GeoPoint、解釈できない場合は None
    """
    if isinstance(value, Mapping):
        return _from_geojson(value)
    if isinstance(value, str):
        return _from_wkb_hex(value)
    return None


def to_geojson_point(point: GeoPoint) -> dict[str, Any]:
    """GeoPoint を GeoJSON Point に変換"""
    return {"type": "Point", "coordinates": [point.lon, point.lat]}
