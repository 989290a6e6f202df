"""
AI backend client - HTTP client for the hosted coder-ai service.

One request/response cycle per call:
- Buffered: POST, read the whole body, normalize its JSON shape
- Streamed: POST with ``Accept: text/event-stream``, decode fragments as
  they arrive (falls back to buffered-with-retry on any failure)

The service is stateless: the full transcript is sent on every request.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing, contextmanager
from typing import Any, AsyncIterator, Awaitable, Dict, Iterator, List, Optional, Sequence, TypeVar

import httpx

from coder_cli.client.decoder import StreamDecoder, extract_body_content, iter_fragments
from coder_cli.client.models import (
    RATE_LIMIT_HEADERS,
    AiRequest,
    AiResponse,
    ChatMessage,
    ChatMode,
    mode_value,
)
from coder_cli.client.retry import RetryPolicy
from coder_cli.client.strategy import (
    BufferedStrategy,
    FallbackStrategy,
    FragmentCallback,
    StreamingStrategy,
)
from coder_cli.core.config import CoderConfig, build_api_url
from coder_cli.core.errors import (
    DAILY_LIMIT_MARKER,
    INSUFFICIENT_TOKENS_MARKER,
    AuthenticationError,
    QuotaExhaustedError,
    RequestFailedError,
    RequestTimeoutError,
    ResponseDecodeError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Body layouts understood by the backend
PROTOCOL_CLIENT_MESSAGES = "client"  # {clientMessages, clientSystemPrompt, mode}
PROTOCOL_MESSAGES = "messages"       # {messages: [system, ...], mode}


def extract_rate_limit_headers(headers: httpx.Headers) -> Dict[str, str]:
    """Copy the rate-limit/token headers that are present."""
    found: Dict[str, str] = {}
    for name in RATE_LIMIT_HEADERS:
        value = headers.get(name)
        if value:
            found[name] = value
    return found


def classify_error_response(status_code: int, body: str) -> Exception:
    """Map a non-2xx response to an error type.

    Quota markers in the body win over the generic authentication message.
    """
    detail = body
    try:
        data = json.loads(body)
        if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
            detail = data["error"]
    except ValueError:
        pass  # plain-text error body

    if DAILY_LIMIT_MARKER in body:
        return QuotaExhaustedError(
            f"{detail}\n\nYou have reached your daily free generation limit. "
            "Please purchase tokens to continue using AI services."
        )
    if INSUFFICIENT_TOKENS_MARKER in body:
        return QuotaExhaustedError(
            f"{detail}\n\nYour tokens are insufficient. Please purchase more tokens to continue."
        )
    if status_code in (401, 403):
        return AuthenticationError(
            "Authentication failed. API key is missing or invalid.\n"
            "Please check your configuration using 'coder-cli init'\n"
            f"Details: {detail}"
        )
    return RequestFailedError(
        f"API request failed with status {status_code}: {detail}",
        status_code=status_code,
        body=body,
    )


def decode_buffered_body(content_type: str, text: str) -> str:
    """Assistant text from a complete response body."""
    if "application/json" in content_type:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ResponseDecodeError(f"Invalid JSON in response: {e}", body=text) from e
    else:
        try:
            data = json.loads(text)
        except ValueError:
            return text
    return extract_body_content(data)


@contextmanager
def _transport_errors(timeout: float) -> Iterator[None]:
    """Translate httpx transport failures into request errors."""
    try:
        yield
    except httpx.TimeoutException as e:
        raise RequestTimeoutError(f"Request timed out after {timeout:g}s") from e
    except httpx.RequestError as e:
        raise RequestFailedError(f"Cannot reach AI backend: {e}") from e


class AiClient:
    """
    Client for the coder-ai backend.

    Usage:
        client = AiClient(load_config())
        response = await client.send_streamed(messages, system_prompt, "chat", print)
    """

    def __init__(
        self,
        config: CoderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        protocol: str = PROTOCOL_CLIENT_MESSAGES,
    ):
        self.config = config
        self.transport = transport
        self.retry_policy = retry_policy or RetryPolicy()
        self.protocol = protocol

    # ==========================================
    # REQUEST CONSTRUCTION
    # ==========================================

    def endpoint_for(self, mode: Any) -> str:
        return build_api_url(self.config.api_url, mode_value(mode))

    def _build_headers(self, streaming: bool = False) -> Dict[str, str]:
        """Build request headers."""
        headers = {"Content-Type": "application/json"}
        if streaming:
            headers["Accept"] = "text/event-stream"
            headers["Cache-Control"] = "no-cache"
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        else:
            logger.warning("API key not found. Run `coder-cli init` to configure it.")
        return headers

    def build_payload(self, request: AiRequest) -> Dict[str, Any]:
        messages = [m.model_dump() for m in request.messages]
        if self.protocol == PROTOCOL_MESSAGES:
            if request.system_prompt:
                messages.insert(0, {"role": "system", "content": request.system_prompt})
            return {"messages": messages, "mode": request.mode}
        return {
            "clientMessages": messages,
            "clientSystemPrompt": request.system_prompt,
            "mode": request.mode,
        }

    def _http(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def _bounded(self, operation: Awaitable[T], timeout: float) -> T:
        """Abort ``operation`` once the overall timeout elapses."""
        try:
            return await asyncio.wait_for(operation, timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Request timed out after {timeout:g}s") from e

    @staticmethod
    def make_request(
        messages: Sequence[ChatMessage],
        system_prompt: str = "",
        mode: Any = ChatMode.CHAT,
        endpoint: Optional[str] = None,
    ) -> AiRequest:
        return AiRequest(
            messages=list(messages),
            system_prompt=system_prompt,
            mode=mode_value(mode),
            endpoint=endpoint,
        )

    # ==========================================
    # BUFFERED
    # ==========================================

    async def send_buffered(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str = "",
        mode: Any = ChatMode.CHAT,
        endpoint: Optional[str] = None,
    ) -> AiResponse:
        """Single buffered request, no retries."""
        return await self.send_request(self.make_request(messages, system_prompt, mode, endpoint))

    async def send_request(self, request: AiRequest) -> AiResponse:
        timeout = self.config.timeout_for(request.mode)
        return await self._bounded(self._post_buffered(request, timeout), timeout)

    async def _post_buffered(self, request: AiRequest, timeout: float) -> AiResponse:
        url = request.endpoint or self.endpoint_for(request.mode)
        logger.debug(f"POST {url} (buffered, {len(request.messages)} messages)")

        with _transport_errors(timeout):
            async with self._http(timeout) as http:
                response = await http.post(
                    url,
                    json=self.build_payload(request),
                    headers=self._build_headers(),
                )
                headers = extract_rate_limit_headers(response.headers)

                if not response.is_success:
                    raise classify_error_response(response.status_code, response.text)

                content = decode_buffered_body(
                    response.headers.get("content-type", ""),
                    response.text,
                )
                return AiResponse(content=content, headers=headers)

    async def send_with_retry(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str = "",
        mode: Any = ChatMode.CHAT,
        endpoint: Optional[str] = None,
    ) -> AiResponse:
        """Buffered request wrapped in the retry policy."""
        request = self.make_request(messages, system_prompt, mode, endpoint)
        return await self.retry_policy.run(lambda: self.send_request(request))

    # ==========================================
    # STREAMED
    # ==========================================

    async def stream_fragments(
        self,
        request: AiRequest,
        sink: Optional[AiResponse] = None,
    ) -> AsyncIterator[str]:
        """
        Yield text fragments of a streamed response.

        Rate-limit headers are copied into ``sink`` when given. Bodies that
        are neither event-stream nor plain text are yielded whole.
        """
        url = request.endpoint or self.endpoint_for(request.mode)
        timeout = self.config.timeout_for(request.mode)
        logger.debug(f"POST {url} (streaming, {len(request.messages)} messages)")

        with _transport_errors(timeout):
            async with self._http(timeout) as http:
                async with http.stream(
                    "POST",
                    url,
                    json=self.build_payload(request),
                    headers=self._build_headers(streaming=True),
                ) as response:
                    if sink is not None:
                        sink.headers.update(extract_rate_limit_headers(response.headers))

                    if not response.is_success:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise classify_error_response(response.status_code, body)

                    content_type = response.headers.get("content-type", "")
                    if "text/event-stream" in content_type or "text/plain" in content_type:
                        decoder = StreamDecoder(
                            raw_line_suffix="\n" if "text/plain" in content_type else ""
                        )
                        async for fragment in iter_fragments(response.aiter_bytes(), decoder):
                            yield fragment
                    else:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        yield body

    async def stream_once(self, request: AiRequest, on_fragment: FragmentCallback) -> AiResponse:
        """One streamed attempt; fragments go to ``on_fragment`` as they arrive."""
        timeout = self.config.timeout_for(request.mode)

        async def consume() -> AiResponse:
            result = AiResponse()
            parts: List[str] = []
            async with aclosing(self.stream_fragments(request, sink=result)) as fragments:
                async for fragment in fragments:
                    on_fragment(fragment)
                    parts.append(fragment)
            result.content = "".join(parts)
            return result

        return await self._bounded(consume(), timeout)

    async def send_streamed(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        mode: Any,
        on_fragment: FragmentCallback,
        endpoint: Optional[str] = None,
    ) -> AiResponse:
        """Streamed request with transparent buffered fallback."""
        request = self.make_request(messages, system_prompt, mode, endpoint)
        strategy = FallbackStrategy(
            StreamingStrategy(self),
            BufferedStrategy(self, self.retry_policy),
        )
        return await strategy.execute(request, on_fragment)

    # ==========================================
    # RAW JSON (project generation, redesign)
    # ==========================================

    async def request_json(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """POST ``payload`` and return the decoded JSON object."""
        timeout = timeout or self.config.timeout_for()

        async def post() -> Dict[str, Any]:
            with _transport_errors(timeout):
                async with self._http(timeout) as http:
                    response = await http.post(endpoint, json=payload, headers=self._build_headers())
                    if not response.is_success:
                        raise classify_error_response(response.status_code, response.text)
                    try:
                        data = response.json()
                    except ValueError as e:
                        raise ResponseDecodeError(
                            f"Invalid JSON in response: {e}", body=response.text
                        ) from e
            if not isinstance(data, dict):
                raise ResponseDecodeError("Expected a JSON object in response", body=response.text)
            return data

        return await self._bounded(post(), timeout)


__all__ = [
    "AiClient",
    "classify_error_response",
    "decode_buffered_body",
    "extract_rate_limit_headers",
]
