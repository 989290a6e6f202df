"""
Stream decoder - turns a streamed response body into text fragments.

Handles two wire formats on the same line-oriented stream:
- SSE: ``data: {...}`` lines, ended by ``data: [DONE]``
- JSON lines: bare ``{"response": ...}`` or OpenAI-style delta chunks

Lines that are not JSON are passed through as plain text so no output is lost.
"""
from __future__ import annotations

import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator, Callable, List, Optional, Tuple, Union

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

ShapeMatcher = Callable[[Any], Optional[str]]


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _first_choice(data: Any) -> Optional[dict]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def match_response_field(data: Any) -> Optional[str]:
    """``{"response": "..."}`` (Workers AI style)."""
    if isinstance(data, dict) and data.get("response") not in (None, ""):
        return _as_text(data["response"])
    return None


def match_delta_content(data: Any) -> Optional[str]:
    """``{"choices": [{"delta": {"content": "..."}}]}``"""
    choice = _first_choice(data)
    if choice is None:
        return None
    delta = choice.get("delta")
    if isinstance(delta, dict) and delta.get("content"):
        return _as_text(delta["content"])
    return None


def match_message_content(data: Any) -> Optional[str]:
    """``{"choices": [{"message": {"content": "..."}}]}``"""
    choice = _first_choice(data)
    if choice is None:
        return None
    message = choice.get("message")
    if isinstance(message, dict) and message.get("content"):
        return _as_text(message["content"])
    return None


def match_bare_string(data: Any) -> Optional[str]:
    return data if isinstance(data, str) else None


# Checked in order; first match wins.
STREAM_CHUNK_SHAPES: Tuple[ShapeMatcher, ...] = (
    match_response_field,
    match_delta_content,
)

BODY_SHAPES: Tuple[ShapeMatcher, ...] = (
    match_message_content,
    match_delta_content,
    match_response_field,
    match_bare_string,
)


def match_shapes(data: Any, shapes: Tuple[ShapeMatcher, ...]) -> Optional[str]:
    for shape in shapes:
        content = shape(data)
        if content is not None:
            return content
    return None


def extract_body_content(data: Any) -> str:
    """Content of a complete (non-streamed) JSON response body.

    Unrecognized objects are returned serialized rather than dropped.
    """
    content = match_shapes(data, BODY_SHAPES)
    if content is not None:
        return content
    if isinstance(data, dict) and "choices" in data:
        return ""
    return json.dumps(data)


class StreamDecoder:
    """
    Incremental line decoder for one response body.

    Usage:
        decoder = StreamDecoder()
        for chunk in chunks:
            fragments.extend(decoder.feed(chunk))
        fragments.extend(decoder.flush())

    A decoder is single-use: once ``[DONE]`` is seen or ``flush`` is called it
    ignores further input.
    """

    def __init__(self, raw_line_suffix: str = ""):
        # "\n" keeps line breaks of plain-text bodies; SSE bodies use "".
        self.raw_line_suffix = raw_line_suffix
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Add a chunk and return fragments for every completed line."""
        if self._finished:
            return []

        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        *lines, self._buffer = self._buffer.split("\n")
        fragments: List[str] = []
        for line in lines:
            fragment = self.decode_line(line.rstrip("\r"))
            if self._finished:
                break
            if fragment:
                fragments.append(fragment)
        return fragments

    def flush(self) -> List[str]:
        """Emit the trailing partial line, if any, and close the decoder."""
        if self._finished:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""

        fragments: List[str] = []
        if tail.strip():
            fragment = self._decode(tail.rstrip("\r"), suffix="")
            if fragment and not self._finished:
                fragments.append(fragment)
        self._finished = True
        return fragments

    def decode_line(self, line: str) -> Optional[str]:
        """Decode one complete line; sets ``finished`` on ``[DONE]``."""
        return self._decode(line, suffix=self.raw_line_suffix)

    def _decode(self, line: str, suffix: str) -> Optional[str]:
        if line.startswith(DATA_PREFIX):
            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self._finished = True
                return None
            if not payload:
                return None
        else:
            if not line.strip():
                return suffix or None
            payload = line

        try:
            data = json.loads(payload)
        except ValueError:
            return line + suffix

        if not isinstance(data, dict):
            return line + suffix
        return match_shapes(data, STREAM_CHUNK_SHAPES)


async def iter_fragments(
    chunks: AsyncIterable[Union[bytes, str]],
    decoder: Optional[StreamDecoder] = None,
) -> AsyncIterator[str]:
    """Yield fragments from an async byte stream until it closes or sends [DONE]."""
    decoder = decoder or StreamDecoder()
    async for chunk in chunks:
        for fragment in decoder.feed(chunk):
            yield fragment
        if decoder.finished:
            return
    for fragment in decoder.flush():
        yield fragment
