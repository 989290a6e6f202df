"""coder-cli API client - request/response protocol with the AI backend."""

from coder_cli.client.api_client import AiClient
from coder_cli.client.decoder import StreamDecoder, iter_fragments
from coder_cli.client.models import AiRequest, AiResponse, ChatMessage, ChatMode
from coder_cli.client.retry import RetryPolicy

__all__ = [
    "AiClient",
    "StreamDecoder",
    "iter_fragments",
    "AiRequest",
    "AiResponse",
    "ChatMessage",
    "ChatMode",
    "RetryPolicy",
]
