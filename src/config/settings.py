"""
設定管理モジュール

環境変数を読み込み、アプリケーション全体で使用する設定を提供します。
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./resources.db", description="データベース URL"
    )

    # Overpass API Configuration
    overpass_api_url: str = Field(
        default="https://overpass-api.de/api/interpreter", description="Overpass API URL"
    )
    overpass_timeout: float = Field(default=25.0, description="Overpass API タイムアウト（秒）")
    overpass_max_retries: int = Field(default=3, description="Overpass API 最大試行回数")
    overpass_retry_backoff: float = Field(
        default=1.0, description="リトライ間隔の基準値（秒、試行回数に比例）"
    )

    # Resource Discovery Configuration
    resource_radius_meters: int = Field(default=10000, description="リソース検索半径（メートル）")
    resource_cache_ttl_seconds: int = Field(
        default=3600, description="リソースキャッシュの有効期限（秒）"
    )
    max_resources_per_type: int = Field(default=20, description="種別ごとの最大リソース数")

    # Rate Limit Configuration
    rate_limit_window_seconds: float = Field(default=60.0, description="レート制限ウィンドウ（秒）")
    rate_limit_max_requests: int = Field(
        default=1000, description="ウィンドウ内の最大リクエスト数（IP・ルート単位）"
    )

    # Notification Configuration
    notification_queue_size: int = Field(
        default=100, description="購読者ごとの通知キューサイズ（超過分は破棄）"
    )

    # Worker Configuration
    worker_error_retry_interval: float = Field(
        default=5.0, description="ワーカーエラー時の再試行間隔（秒）"
    )

    # Application Configuration
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"], description="CORS 許可オリジン"
    )
    log_level: str = Field(default="INFO", description="ログレベル")
    environment: str = Field(default="development", description="実行環境")


@lru_cache()
def get_settings() -> Settings:
    """設定インスタンスを取得（シングルトン）"""
    return Settings()
