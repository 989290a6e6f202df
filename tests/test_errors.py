"""Tests for error classification helpers."""
from coder_cli.core.errors import (
    AuthenticationError,
    CodeModificationError,
    GitOperationError,
    QuotaExhaustedError,
    RequestFailedError,
    RequestTimeoutError,
    format_user_error,
    is_retryable,
)


def test_is_retryable_by_type():
    assert is_retryable(RequestFailedError("500"))
    assert is_retryable(RequestTimeoutError("slow"))
    assert not is_retryable(AuthenticationError("denied"))
    assert not is_retryable(QuotaExhaustedError("empty"))


def test_is_retryable_by_message():
    assert not is_retryable(RuntimeError("Authentication failed for user"))
    assert not is_retryable(RequestFailedError("Insufficient tokens"))
    assert is_retryable(ValueError("something else"))


def test_format_user_error():
    assert format_user_error(GitOperationError("clone failed")) == "Error (GIT_OPERATION_ERROR): clone failed"
    assert format_user_error(CodeModificationError("x", code="CUSTOM")) == "Error (CUSTOM): x"
    assert format_user_error(OSError("disk full")) == "Error: disk full"


def test_request_failed_attributes():
    error = RequestFailedError("failed", status_code=500, body="oops")
    assert (error.status_code, error.body, error.code) == (500, "oops", "REQUEST_FAILED")
