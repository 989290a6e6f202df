"""Configuration management for coder-cli."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# Global config file (same location the npm release used)
CONFIG_FILE = Path.home() / ".coder-cli-config.json"

DEFAULT_API_URL = "https://coder-ai.mvstream.workers.dev/api"
API_KEY_PAGE = "https://coder-ai.pages.dev/"

# Seconds
DEFAULT_TIMEOUT = 120.0
HEAVY_MODE_TIMEOUT = 600.0
HEAVY_MODES = {"project", "redesign"}

KNOWN_MODES = ("chat", "create", "fix", "project", "analyze", "explain", "script", "redesign")


class CoderConfig(BaseModel):
    """Backend connection settings.

    Stored with camelCase keys; ``timeout`` is in milliseconds.
    """
    model_config = ConfigDict(populate_by_name=True)

    api_url: str = Field(default=DEFAULT_API_URL, alias="apiUrl")
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    timeout: Optional[int] = None

    def timeout_for(self, mode: str = "chat") -> float:
        """Request timeout in seconds for a mode."""
        seconds = self.timeout / 1000 if self.timeout else DEFAULT_TIMEOUT
        if mode in HEAVY_MODES:
            return max(seconds, HEAVY_MODE_TIMEOUT)
        return seconds

    def to_file_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def get_config_path() -> Path:
    """Get the path to the global config file."""
    return CONFIG_FILE


def load_config(path: Optional[Path] = None) -> CoderConfig:
    """Load configuration from file, then apply environment overrides.

    A broken config file is reported and replaced by defaults; invalid
    individual values are dropped.
    """
    load_dotenv()
    config_path = path or get_config_path()
    data: dict = {}

    if config_path.exists():
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Error reading config file {config_path}: {e}")
            data = {}
        if not isinstance(data, dict):
            logger.warning(f"Config file {config_path} is not a JSON object, ignoring it")
            data = {}
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    if os.environ.get("CODER_API_URL"):
        data["apiUrl"] = os.environ["CODER_API_URL"]
    if os.environ.get("CODER_API_KEY"):
        data["apiKey"] = os.environ["CODER_API_KEY"]
    if os.environ.get("CODER_TIMEOUT"):
        data["timeout"] = os.environ["CODER_TIMEOUT"]

    try:
        return CoderConfig.model_validate(data)
    except ValidationError as e:
        for error in e.errors():
            key = error["loc"][0] if error["loc"] else None
            if key in data:
                logger.warning(f"Ignoring invalid config value for {key}: {error['msg']}")
                data.pop(key)

    try:
        return CoderConfig.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Invalid configuration, using defaults: {e}")
        return CoderConfig()


def save_config(config: CoderConfig, path: Optional[Path] = None) -> Path:
    """Save configuration and restrict it to the current user."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config.to_file_dict(), indent=2), encoding="utf-8")
    config_path.chmod(0o600)
    return config_path


def build_api_url(base_url: str, mode: str) -> str:
    """Build the endpoint URL for a mode.

    ``https://host`` and ``https://host/api/chat`` both normalize to
    ``https://host/api`` before the mode segment is appended.
    """
    normalized = base_url.rstrip("/")

    if not normalized.endswith("/api"):
        head, _, tail = normalized.rpartition("/")
        if head.endswith("/api") and tail in KNOWN_MODES:
            normalized = head
        else:
            normalized = f"{normalized}/api"

    if mode not in KNOWN_MODES:
        mode = "chat"
    return f"{normalized}/{mode}"
