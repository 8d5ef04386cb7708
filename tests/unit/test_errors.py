import asyncio

import pytest
from feedgen.models.schemas import ErrorType
from feedgen.utils.errors import (
    ArtifactDeleteError,
    ArtifactWriteError,
    CatalogReadError,
    ConcurrentUpdateError,
    ErrorHandler,
    FeedError,
    InvalidTransitionError,
    RecordExistsError,
    RecordNotFoundError,
    RunAbandonedError,
    RunInProgressError,
    RunTimeoutError,
    UnsupportedPlatformError,
    ValidationError,
)


@pytest.mark.parametrize("error,expected_type,status", [
    (ValidationError("bad"), ErrorType.VALIDATION_ERROR, 400),
    (UnsupportedPlatformError("google"), ErrorType.UNSUPPORTED_PLATFORM, 400),
    (RecordNotFoundError("b1", "k.xml"), ErrorType.NOT_FOUND_ERROR, 404),
    (RecordExistsError("k.xml"), ErrorType.CONFLICT_ERROR, 409),
    (InvalidTransitionError("pending", "completed"), ErrorType.CONFLICT_ERROR, 409),
    (RunInProgressError("k.xml"), ErrorType.CONFLICT_ERROR, 409),
    (ConcurrentUpdateError("k.xml", 3), ErrorType.CONFLICT_ERROR, 409),
    (CatalogReadError("db down"), ErrorType.CATALOG_ERROR, 502),
    (ArtifactWriteError("r2 down"), ErrorType.STORAGE_ERROR, 502),
    (ArtifactDeleteError("r2 down"), ErrorType.STORAGE_ERROR, 502),
    (RunTimeoutError("k.xml", 600), ErrorType.TIMEOUT_ERROR, 504),
    (RunAbandonedError("k.xml", 600), ErrorType.TIMEOUT_ERROR, 504),
    (FeedError("generic"), ErrorType.INTERNAL_ERROR, 500),
])
def test_feed_errors_map_to_status(error, expected_type, status):
    assert ErrorHandler.categorize_error(error) == expected_type
    code, body = ErrorHandler.to_response(error)
    assert code == status
    assert body["success"] is False
    assert body["error"] == expected_type.value
    assert body["message"] == str(error)


def test_builtin_errors_categorized():
    assert ErrorHandler.categorize_error(asyncio.TimeoutError()) == ErrorType.TIMEOUT_ERROR
    assert ErrorHandler.categorize_error(ValueError("x")) == ErrorType.VALIDATION_ERROR
    assert ErrorHandler.categorize_error(RuntimeError("x")) == ErrorType.INTERNAL_ERROR


def test_unexpected_error_message_hidden_when_requested():
    code, body = ErrorHandler.to_response(RuntimeError("secret dsn"), expose_details=False)
    assert code == 500
    assert body["message"] == "An unexpected error occurred"


def test_validation_error_body_lists_fields():
    error = ValidationError(
        "Invalid request",
        code="INVALID_GENERATE_REQUEST",
        errors=[{"field": "name", "message": "Field required"}],
    )
    _, body = ErrorHandler.to_response(error)
    assert body["errors"] == [{"field": "name", "message": "Field required"}]
    assert error.code == "INVALID_GENERATE_REQUEST"


def test_not_found_message_names_key_and_business():
    error = RecordNotFoundError("b1", "b1_1.xml")
    assert "b1_1.xml" in str(error)
    assert error.details == {"business_id": "b1", "file_key": "b1_1.xml"}
