"""
リソース関連モデル

ResourceType, Resource
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.connection import Base


class ResourceType(str, Enum):
    """リソース種別"""

    HOSPITAL = "hospital"
    SHELTER = "shelter"
    PHARMACY = "pharmacy"
    POLICE = "police"
    FIRE_STATION = "fire_station"
    UNKNOWN = "unknown"

    @classmethod
    def from_tag(cls, value: Optional[str]) -> "ResourceType":
        """OSM の amenity タグから種別を解決（未知の値は UNKNOWN）"""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def categories(cls) -> list["ResourceType"]:
        """検索対象のカテゴリ（UNKNOWN 以外）"""
        return [member for member in cls if member is not cls.UNKNOWN]


class Resource(Base):
    """災害地点周辺の支援リソース"""

    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    disaster_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disasters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default=ResourceType.UNKNOWN.value)

    # 位置情報（WGS84）
    latitude: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    location_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def location(self) -> dict[str, Any]:
        """GeoJSON Point 形式の位置"""
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}

    def to_dict(self) -> dict[str, Any]:
        """JSON シリアライズ可能な辞書に変換"""
        return {
            "id": self.id,
            "disaster_id": self.disaster_id,
            "name": self.name,
            "type": ResourceType.from_tag(self.type).value,
            "location": self.location,
            "location_name": self.location_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, disaster={self.disaster_id}, type={self.type})>"
