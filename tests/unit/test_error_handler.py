"""Unit tests for error handler"""
import pytest

from src.services.error_handler import (
    ApplicationError,
    DatabaseError,
    ErrorCode,
    ErrorResponse,
    OverpassAPIError,
    RateLimitExceededError,
    RecordNotFoundError,
    ValidationError,
    handle_error,
    http_status_for,
)


def test_error_response_creation():
    """ErrorResponse の作成テスト"""
    error = ErrorResponse(
        code=ErrorCode.INTERNAL_ERROR,
        message="Test error",
        details={"key": "value"},
    )

    assert error.code == ErrorCode.INTERNAL_ERROR
    assert error.message == "Test error"
    assert error.details == {"key": "value"}


def test_application_error():
    """ApplicationError のテスト"""
    error = ApplicationError(
        code=ErrorCode.VALIDATION_ERROR,
        message="Validation failed",
        details={"field": "lat"},
    )

    assert error.code == ErrorCode.VALIDATION_ERROR
    assert error.message == "Validation failed"

    response = error.to_response()
    assert isinstance(response, ErrorResponse)
    assert response.code == ErrorCode.VALIDATION_ERROR


def test_overpass_api_error():
    """OverpassAPIError のテスト"""
    original = TimeoutError("timed out")
    error = OverpassAPIError("Failed to query OSM", details={"attempts": 3}, original_error=original)

    assert error.code == ErrorCode.OVERPASS_API_ERROR
    assert error.details["attempts"] == 3
    assert error.original_error is original


@pytest.mark.parametrize(
    "error, status",
    [
        (ValidationError("bad"), 400),
        (RecordNotFoundError("missing"), 404),
        (RateLimitExceededError("slow down"), 429),
        (DatabaseError("db"), 500),
        (OverpassAPIError("upstream"), 502),
    ],
)
def test_http_status_for(error, status):
    """ErrorCode ごとの HTTP ステータス"""
    assert http_status_for(error) == status


def test_handle_error_with_application_error():
    """handle_error で ApplicationError を処理"""
    response = handle_error(RecordNotFoundError("Disaster not found"))

    assert isinstance(response, ErrorResponse)
    assert response.code == ErrorCode.RECORD_NOT_FOUND


def test_handle_error_with_generic_exception():
    """handle_error で一般的な Exception を処理"""
    response = handle_error(ValueError("Generic error"))

    assert isinstance(response, ErrorResponse)
    assert response.code == ErrorCode.INTERNAL_ERROR
    assert response.details["original_error"] == "Generic error"
