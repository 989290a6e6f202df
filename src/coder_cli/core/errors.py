"""Error types for coder-cli.

Retry decisions are made from these types (and, for errors raised by code we
do not own, from their message text).
"""
from __future__ import annotations

from typing import Optional


DAILY_LIMIT_MARKER = "Daily free generation limit exceeded"
INSUFFICIENT_TOKENS_MARKER = "Insufficient tokens"
AUTH_FAILED_MARKER = "Authentication failed"

NON_RETRYABLE_MARKERS = (
    DAILY_LIMIT_MARKER,
    INSUFFICIENT_TOKENS_MARKER,
    AUTH_FAILED_MARKER,
)


class CoderCliError(Exception):
    """Base error for the CLI."""

    code = "CODER_CLI_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ConfigError(CoderCliError):
    code = "CONFIG_ERROR"


class ProjectAnalysisError(CoderCliError):
    code = "PROJECT_ANALYSIS_ERROR"


class GitOperationError(CoderCliError):
    code = "GIT_OPERATION_ERROR"


class AiCommunicationError(CoderCliError):
    """Classified backend failure with a user-facing message."""

    code = "AI_COMMUNICATION_ERROR"


class AuthenticationError(AiCommunicationError):
    """401/403 from the backend. Not retried."""


class QuotaExhaustedError(AiCommunicationError):
    """Daily free generations or token balance used up. Not retried."""


class RequestFailedError(CoderCliError):
    """Transient request failure (network, 5xx, undecodable body)."""

    code = "REQUEST_FAILED"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RequestTimeoutError(RequestFailedError):
    code = "REQUEST_TIMEOUT"


class ResponseDecodeError(RequestFailedError):
    code = "RESPONSE_DECODE_ERROR"


class CodeModificationError(CoderCliError):
    code = "CODE_MODIFICATION_ERROR"


def is_retryable(error: BaseException) -> bool:
    """Return False for authentication and quota failures."""
    if isinstance(error, (AuthenticationError, QuotaExhaustedError)):
        return False
    message = str(error)
    return not any(marker in message for marker in NON_RETRYABLE_MARKERS)


def format_user_error(error: BaseException) -> str:
    """Render an error for display."""
    if isinstance(error, CoderCliError):
        return f"Error ({error.code}): {error.message}"
    return f"Error: {error}"
