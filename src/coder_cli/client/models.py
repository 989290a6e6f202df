"""Wire models shared by the client and the chat session."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ChatMode(str, Enum):
    """Backend modes; each maps to an endpoint of the same name."""
    CHAT = "chat"
    FIX = "fix"
    CREATE = "create"
    EXPLAIN = "explain"
    SCRIPT = "script"
    REDESIGN = "redesign"
    PROJECT = "project"
    ANALYZE = "analyze"


# Response headers copied into AiResponse.headers when present
RATE_LIMIT_HEADERS = (
    "x-ratelimit-remaining",
    "x-ratelimit-limit",
    "x-ratelimit-reset",
    "x-tokens-remaining",
    "x-daily-free-generations-remaining",
)


class ChatMessage(BaseModel):
    """One turn of the conversation transcript."""
    role: Literal["system", "user", "assistant"]
    content: str


class AiResponse(BaseModel):
    """Accumulated assistant text plus rate-limit/token headers.

    Every header is optional; only the ones the backend sent are present.
    """
    content: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)

    def header_int(self, name: str) -> Optional[int]:
        """Integer value of a header, or None if missing/unparseable."""
        value = self.headers.get(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None


class AiRequest(BaseModel):
    """Everything needed to issue one request."""
    messages: List[ChatMessage] = Field(default_factory=list)
    system_prompt: str = ""
    mode: str = ChatMode.CHAT.value
    endpoint: Optional[str] = None


def mode_value(mode) -> str:
    """Plain string for a ChatMode or str."""
    return mode.value if isinstance(mode, Enum) else str(mode)
