"""
エラーハンドリングユーティリティ

一貫したエラーレスポンスを提供します。
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from src.config.logging import get_logger

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    """エラーコード"""

    # 一般エラー
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Overpass API 関連
    OVERPASS_API_ERROR = "OVERPASS_API_ERROR"

    # データベース関連
    DATABASE_ERROR = "DATABASE_ERROR"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"


class ErrorResponse(BaseModel):
    """エラーレスポンス"""

    code: ErrorCode
    message: str
    details: Optional[dict[str, Any]] = None


class ApplicationError(Exception):
    """アプリケーション基底例外"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """ErrorResponse に変換"""
        return ErrorResponse(code=self.code, message=self.message, details=self.details)


class ValidationError(ApplicationError):
    """入力バリデーションエラー"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None, **kwargs):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR, message=message, details=details, **kwargs
        )


class OverpassAPIError(ApplicationError):
    """Overpass API エラー（リトライ上限到達時）"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None, **kwargs):
        super().__init__(
            code=ErrorCode.OVERPASS_API_ERROR, message=message, details=details, **kwargs
        )


class DatabaseError(ApplicationError):
    """データベースエラー"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None, **kwargs):
        super().__init__(code=ErrorCode.DATABASE_ERROR, message=message, details=details, **kwargs)


class RecordNotFoundError(ApplicationError):
    """レコード未検出エラー"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None, **kwargs):
        super().__init__(
            code=ErrorCode.RECORD_NOT_FOUND, message=message, details=details, **kwargs
        )


class RateLimitExceededError(ApplicationError):
    """レート制限超過エラー"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None, **kwargs):
        super().__init__(
            code=ErrorCode.RATE_LIMIT_EXCEEDED, message=message, details=details, **kwargs
        )


# ErrorCode ごとの HTTP ステータス
HTTP_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.OVERPASS_API_ERROR: 502,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.RECORD_NOT_FOUND: 404,
}


def http_status_for(error: ApplicationError) -> int:
    """ApplicationError に対応する HTTP ステータスを返す"""
    return HTTP_STATUS_BY_CODE.get(error.code, 400)


def handle_error(error: Exception, context: Optional[dict[str, Any]] = None) -> ErrorResponse:
    """エラーをハンドリングして ErrorResponse を返す

    Args:
        error: 例外
        context: コンテキスト情報

    Returns:
        ErrorResponse
    """
    context = context or {}

    if isinstance(error, ApplicationError):
        logger.error(
            f"Application error: {error.code} - {error.message}",
            extra={"error_details": error.details, **context},
        )
        return error.to_response()

    # 予期しないエラー
    logger.exception("Unexpected error", extra=context)
    return ErrorResponse(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred",
        details={"original_error": str(error)},
    )
