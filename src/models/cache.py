"""
リソースキャッシュモデル

ResourceCacheEntry
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.connection import Base


class ResourceCacheEntry(Base):
    """周辺リソース検索結果のキャッシュ"""

    __tablename__ = "resource_cache"

    # resources:{disaster_id}:{lat}:{lon}:{radius}
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
