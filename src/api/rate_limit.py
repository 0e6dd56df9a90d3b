"""
レート制限

クライアント IP・ルート単位の移動ウィンドウ方式（limits のインメモリストレージ）
"""

from fastapi import Request
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from src.config.logging import get_logger
from src.config.settings import get_settings
from src.services.error_handler import RateLimitExceededError

logger = get_logger(__name__)

RATE_LIMIT_NAMESPACE = "resources"


class RateLimiter:
    """移動ウィンドウのレート制限（FastAPI 依存性として使用）"""

    def __init__(
        self,
        max_requests: int | None = None,
        window_seconds: float | None = None,
    ):
        settings = get_settings()
        self.max_requests = max_requests or settings.rate_limit_max_requests
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds

        self.item = RateLimitItemPerSecond(
            self.max_requests, max(1, int(self.window_seconds)), namespace=RATE_LIMIT_NAMESPACE
        )
        # 期限切れのキーはストレージ側で破棄される
        self.storage = MemoryStorage()
        self.strategy = MovingWindowRateLimiter(self.storage)

    def hit(self, key: str) -> bool:
        """リクエストを記録し、制限内なら True を返す"""
        return self.strategy.hit(self.item, key)

    def remaining(self, key: str) -> int:
        """ウィンドウ内の残りリクエスト数"""
        return self.strategy.get_window_stats(self.item, key).remaining

    def reset(self) -> None:
        """全カウンタをクリア"""
        self.storage.reset()

    async def __call__(self, request: Request) -> None:
        client_host = request.client.host if request.client else "unknown"
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        key = f"{client_host}:{route_path}"

        if not self.hit(key):
            logger.warning(
                f"Rate limit exceeded: {key}", extra={"event": "rate_limit_exceeded"}
            )
            raise RateLimitExceededError("Too many requests, please try again later.")
