"""
ジオメトリ正規化のユニットテスト
"""

import struct

import pytest

from src.services.geometry import GeoPoint, normalize_point, to_geojson_point

# POINT(1 2), リトルエンディアン WKB
WKB_POINT_1_2 = "0101000000000000000000F03F0000000000000040"


def ewkb_hex(lon: float, lat: float, srid: int = 4326) -> str:
    """SRID 付き EWKB (リトルエンディアン) の 16 進文字列を生成"""
    return (
        "01"
        + struct.pack("<I", 0x20000001).hex()
        + struct.pack("<I", srid).hex()
        + struct.pack("<dd", lon, lat).hex()
    ).upper()


def test_geojson_point():
    """GeoJSON Point を正規化"""
    point = normalize_point({"type": "Point", "coordinates": [-73.9857, 40.7484]})
    assert point == GeoPoint(lat=40.7484, lon=-73.9857)


def test_geojson_integer_coordinates():
    """整数座標も float に変換される"""
    point = normalize_point({"coordinates": [10, 20]})
    assert point == GeoPoint(lat=20.0, lon=10.0)
    assert isinstance(point.lat, float)


def test_wkb_hex_point():
    """素の WKB を正規化"""
    assert normalize_point(WKB_POINT_1_2) == GeoPoint(lat=2.0, lon=1.0)


def test_wkb_hex_with_0x_prefix_and_lowercase():
    """0x 接頭辞と小文字を許容"""
    assert normalize_point("0x" + WKB_POINT_1_2.lower()) == GeoPoint(lat=2.0, lon=1.0)


def test_ewkb_hex_with_srid():
    """SRID 付き EWKB を正規化"""
    point = normalize_point(ewkb_hex(-73.9857, 40.7484))
    assert point.lat == pytest.approx(40.7484)
    assert point.lon == pytest.approx(-73.9857)


@pytest.mark.parametrize(
    "value",
    [
        None,
        42,
        3.14,
        [1.0, 2.0],
        {},
        {"type": "Point"},
        {"coordinates": [1.0]},
        {"coordinates": "1,2"},
        {"coordinates": ["a", "b"]},
        {"coordinates": [True, False]},
        {"coordinates": [float("nan"), 1.0]},
        {"type": "Point", "coordinates": [1.0, 2.0, 3.0]},  # 3D
        {"type": "LineString", "coordinates": [1.0, 2.0]},
        "",
        "not-hex-at-all",
        "0101000000",  # 短すぎる
        "00000000013FF00000000000004000000000000000",  # ビッグエンディアン
        "010200000000000000000000F03F0000000000000040",  # LINESTRING
        "01E9030000000000000000F03F00000000000000400000000000000840",  # POINT Z
        "0101000000000000000000F87F000000000000F87F",  # POINT EMPTY
    ],
)
def test_unrecognized_input_returns_none(value):
    """解釈できない入力は例外を送出せず None を返す"""
    assert normalize_point(value) is None


def test_to_geojson_point_round_trip():
    """GeoPoint から GeoJSON への変換"""
    geojson = to_geojson_point(GeoPoint(lat=35.68, lon=139.76))
    assert geojson == {"type": "Point", "coordinates": [139.76, 35.68]}
    assert normalize_point(geojson) == GeoPoint(lat=35.68, lon=139.76)
