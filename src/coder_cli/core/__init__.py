"""coder-cli core modules."""

from coder_cli.core.config import CoderConfig, build_api_url, get_config_path, load_config, save_config
from coder_cli.core.errors import (
    AiCommunicationError,
    AuthenticationError,
    CoderCliError,
    QuotaExhaustedError,
    RequestFailedError,
    format_user_error,
)

__all__ = [
    "CoderConfig",
    "build_api_url",
    "get_config_path",
    "load_config",
    "save_config",
    "AiCommunicationError",
    "AuthenticationError",
    "CoderCliError",
    "QuotaExhaustedError",
    "RequestFailedError",
    "format_user_error",
]
