"""Tests for the AI backend client."""
import asyncio
import json

import httpx
import pytest

from coder_cli.client.api_client import (
    PROTOCOL_MESSAGES,
    classify_error_response,
    decode_buffered_body,
)
from coder_cli.client.models import AiRequest, ChatMessage, ChatMode
from coder_cli.core.config import CoderConfig
from coder_cli.core.errors import (
    AuthenticationError,
    QuotaExhaustedError,
    RequestFailedError,
    RequestTimeoutError,
    ResponseDecodeError,
)

from conftest import API_URL, is_streaming

MESSAGES = [ChatMessage(role="user", content="Hi")]


def sse_body(*parts) -> bytes:
    lines = [f"data: {json.dumps({'response': p})}\n\n" for p in parts]
    return ("".join(lines) + "data: [DONE]\n\n").encode()


# ===== Error Classification =====

def test_classify_auth_error_uses_json_error_field():
    error = classify_error_response(401, json.dumps({"error": "bad key"}))
    assert isinstance(error, AuthenticationError)
    assert "coder-cli init" in error.message
    assert "Details: bad key" in error.message


def test_classify_quota_markers_override_auth():
    daily = classify_error_response(403, "Daily free generation limit exceeded")
    tokens = classify_error_response(402, json.dumps({"error": "Insufficient tokens"}))

    assert isinstance(daily, QuotaExhaustedError)
    assert "purchase tokens" in daily.message
    assert isinstance(tokens, QuotaExhaustedError)


def test_classify_generic_failure_keeps_status_and_body():
    error = classify_error_response(502, "upstream exploded")
    assert isinstance(error, RequestFailedError)
    assert error.status_code == 502
    assert error.body == "upstream exploded"
    assert str(error) == "API request failed with status 502: upstream exploded"


def test_decode_buffered_body_shapes():
    assert decode_buffered_body("application/json", '{"response": "a"}') == "a"
    assert decode_buffered_body("text/plain", "just text") == "just text"
    with pytest.raises(ResponseDecodeError):
        decode_buffered_body("application/json", "{broken")


# ===== Buffered =====

@pytest.mark.asyncio
async def test_send_buffered_request_and_headers(make_client):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"content": "Hello"}}]},
            headers={"x-ratelimit-remaining": "5", "x-tokens-remaining": "100"},
        )

    client = make_client(handler)
    response = await client.send_buffered(MESSAGES, "be brief", ChatMode.FIX)

    assert response.content == "Hello"
    assert response.headers == {"x-ratelimit-remaining": "5", "x-tokens-remaining": "100"}
    assert response.header_int("x-ratelimit-limit") is None
    assert seen["url"] == f"{API_URL}/fix"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "clientMessages": [{"role": "user", "content": "Hi"}],
        "clientSystemPrompt": "be brief",
        "mode": "fix",
    }


@pytest.mark.asyncio
async def test_messages_protocol_prepends_system_prompt(make_client):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"response": "ok"})

    client = make_client(handler, protocol=PROTOCOL_MESSAGES)
    await client.send_buffered(MESSAGES, "system text")

    assert bodies[0]["messages"][0] == {"role": "system", "content": "system text"}
    assert bodies[0]["messages"][1] == {"role": "user", "content": "Hi"}
    assert bodies[0]["mode"] == "chat"


@pytest.mark.asyncio
async def test_no_api_key_omits_authorization(make_client):
    seen = []

    def handler(request):
        seen.append(request.headers.get("authorization"))
        return httpx.Response(200, json={"response": "ok"})

    client = make_client(handler, client_config=CoderConfig(api_url=API_URL))
    await client.send_buffered(MESSAGES)

    assert seen == [None]


@pytest.mark.asyncio
async def test_send_buffered_raises_classified_error(make_client):
    client = make_client(lambda request: httpx.Response(401, json={"error": "no key"}))

    with pytest.raises(AuthenticationError):
        await client.send_buffered(MESSAGES)


@pytest.mark.asyncio
async def test_network_error_becomes_request_failed(make_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RequestFailedError, match="Cannot reach AI backend"):
        await make_client(handler).send_buffered(MESSAGES)


@pytest.mark.asyncio
async def test_transport_timeout_becomes_timeout_error(make_client):
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(RequestTimeoutError):
        await make_client(handler).send_buffered(MESSAGES)


@pytest.mark.asyncio
async def test_overall_timeout_aborts_slow_request(make_client):
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json={"response": "too late"})

    client = make_client(handler, client_config=CoderConfig(api_url=API_URL, timeout=50))

    with pytest.raises(RequestTimeoutError, match="timed out"):
        await client.send_buffered(MESSAGES)


@pytest.mark.asyncio
async def test_send_with_retry_retries_server_errors(make_client, sleeper):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"response": "finally"})

    response = await make_client(handler).send_with_retry(MESSAGES)

    assert response.content == "finally"
    assert len(calls) == 3
    assert sleeper.delays == [2.0, 4.0]


# ===== Streamed =====

@pytest.mark.asyncio
async def test_send_streamed_emits_fragments(make_client):
    def handler(request):
        assert is_streaming(request)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream", "x-daily-free-generations-remaining": "2"},
            content=sse_body("Hel", "lo"),
        )

    fragments = []
    response = await make_client(handler).send_streamed(MESSAGES, "", ChatMode.CHAT, fragments.append)

    assert fragments == ["Hel", "lo"]
    assert response.content == "Hello"
    assert response.header_int("x-daily-free-generations-remaining") == 2


@pytest.mark.asyncio
async def test_streamed_chunks_split_mid_line(make_client):
    async def body():
        yield b'data: {"response": "a'
        yield b'b"}\n\ndata: {"response": "c"}\n'
        yield b"data: [DONE]\n"

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())

    fragments = []
    response = await make_client(handler).send_streamed(MESSAGES, "", "chat", fragments.append)

    assert fragments == ["ab", "c"]
    assert response.content == "abc"


@pytest.mark.asyncio
async def test_non_streaming_content_type_is_one_fragment(make_client):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "application/json"}, content=b'{"response": "x"}')

    fragments = []
    response = await make_client(handler).send_streamed(MESSAGES, "", "chat", fragments.append)

    assert fragments == ['{"response": "x"}']
    assert response.content == '{"response": "x"}'


@pytest.mark.asyncio
async def test_empty_non_streaming_body_is_one_empty_fragment(make_client):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "application/json"}, content=b"")

    fragments = []
    response = await make_client(handler).send_streamed(MESSAGES, "", "chat", fragments.append)

    assert fragments == [""]
    assert response.content == ""


@pytest.mark.asyncio
async def test_stream_failure_falls_back_to_buffered(make_client):
    def handler(request):
        if is_streaming(request):
            return httpx.Response(500, text="stream broke")
        return httpx.Response(200, json={"response": "buffered answer"})

    fragments = []
    response = await make_client(handler).send_streamed(MESSAGES, "", "chat", fragments.append)

    assert response.content == "buffered answer"
    assert fragments == ["buffered answer"]


@pytest.mark.asyncio
async def test_fallback_prefers_classified_error(make_client, sleeper):
    def handler(request):
        if is_streaming(request):
            return httpx.Response(401, text="Authentication failed")
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(AuthenticationError):
        await make_client(handler).send_streamed(MESSAGES, "", "chat", lambda f: None)
    assert sleeper.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_fallback_auth_error_is_not_retried(make_client, sleeper):
    calls = []

    def handler(request):
        calls.append(is_streaming(request))
        if is_streaming(request):
            return httpx.Response(500, text="boom")
        return httpx.Response(403, text="Insufficient tokens")

    with pytest.raises(QuotaExhaustedError):
        await make_client(handler).send_streamed(MESSAGES, "", "chat", lambda f: None)
    assert calls == [True, False]
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_stream_fragments_is_lazy_iterator(make_client):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=sse_body("1", "2"))

    client = make_client(handler)
    request = AiRequest(messages=MESSAGES)

    assert [f async for f in client.stream_fragments(request)] == ["1", "2"]


# ===== Raw JSON =====

@pytest.mark.asyncio
async def test_request_json(make_client):
    def handler(request):
        assert json.loads(request.content) == {"input": "https://example.com"}
        return httpx.Response(200, json={"files": []})

    client = make_client(handler)
    data = await client.request_json(client.endpoint_for(ChatMode.REDESIGN), {"input": "https://example.com"})

    assert data == {"files": []}


@pytest.mark.asyncio
async def test_request_json_rejects_non_object(make_client):
    client = make_client(lambda request: httpx.Response(200, json=["a"]))

    with pytest.raises(ResponseDecodeError):
        await client.request_json(client.endpoint_for("project"), {})
