"""
災害関連モデル

DisasterStatus, Disaster
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.connection import Base


class DisasterStatus(str, Enum):
    """災害レポートの承認ステータス"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Disaster(Base):
    """災害レポート（リソース探索に必要な項目のみ）"""

    __tablename__ = "disasters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    # GeoJSON Point オブジェクト、または WKB の 16 進文字列
    location: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DisasterStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Disaster(id={self.id}, status={self.status})>"
