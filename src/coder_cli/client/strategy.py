"""
Response strategies for one chat turn.

A turn first tries the streaming endpoint. If that fails for any reason the
buffered endpoint (with retries) is tried instead, and its whole body is
handed to the fragment callback as a single fragment.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Protocol

from coder_cli.client.models import AiRequest, AiResponse
from coder_cli.client.retry import RetryPolicy
from coder_cli.core.errors import AiCommunicationError

if TYPE_CHECKING:
    from coder_cli.client.api_client import AiClient

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str], None]


class ResponseStrategy(Protocol):
    async def execute(self, request: AiRequest, on_fragment: FragmentCallback) -> AiResponse:
        ...


class StreamingStrategy:
    """Single streamed attempt, no retries."""

    def __init__(self, client: "AiClient"):
        self.client = client

    async def execute(self, request: AiRequest, on_fragment: FragmentCallback) -> AiResponse:
        return await self.client.stream_once(request, on_fragment)


class BufferedStrategy:
    """Buffered request wrapped in the retry policy."""

    def __init__(self, client: "AiClient", retry_policy: RetryPolicy):
        self.client = client
        self.retry_policy = retry_policy

    async def execute(self, request: AiRequest, on_fragment: FragmentCallback) -> AiResponse:
        response = await self.retry_policy.run(lambda: self.client.send_request(request))
        try:
            on_fragment(response.content)
        except Exception:
            # The content was received; display problems must not lose it.
            logger.exception("Error processing fallback response")
        return response


def more_specific_error(primary: Exception, fallback: Exception) -> Exception:
    """Prefer a classified (auth/quota/backend) error over a generic one."""
    if isinstance(fallback, AiCommunicationError):
        return fallback
    if isinstance(primary, AiCommunicationError):
        return primary
    return fallback


class FallbackStrategy:
    """Run ``primary``; on failure run ``fallback``."""

    def __init__(self, primary: ResponseStrategy, fallback: ResponseStrategy):
        self.primary = primary
        self.fallback = fallback

    async def execute(self, request: AiRequest, on_fragment: FragmentCallback) -> AiResponse:
        try:
            return await self.primary.execute(request, on_fragment)
        except Exception as primary_error:
            logger.warning(f"Streaming request failed, falling back to buffered request: {primary_error}")
            try:
                return await self.fallback.execute(request, on_fragment)
            except Exception as fallback_error:
                error = more_specific_error(primary_error, fallback_error)
                if error is fallback_error:
                    raise
                raise error from fallback_error
