"""Pytest configuration and fixtures."""
from contextlib import nullcontext
from typing import List, Optional

import httpx
import pytest

from coder_cli.client.api_client import AiClient
from coder_cli.client.retry import RetryPolicy
from coder_cli.core.config import CoderConfig

API_URL = "https://backend.test/api"


class RecordingUI:
    """Stand-in for CoderConsole that records output and replays answers."""

    def __init__(self, inputs: Optional[List] = None, confirms: Optional[List[bool]] = None,
                 texts: Optional[List[str]] = None):
        self.inputs = list(inputs or [])
        self.confirms = list(confirms or [])
        self.texts = list(texts or [])
        self.events = []
        self.fragments: List[str] = []
        self.results = []

    def _record(self, kind, value=None):
        self.events.append((kind, value))

    def messages(self, kind):
        return [value for k, value in self.events if k == kind]

    def thinking(self, message="AI is thinking..."):
        self._record("thinking", message)
        return nullcontext()

    def start_stream(self):
        self._record("start_stream")

    def stream_fragment(self, fragment):
        self.fragments.append(fragment)

    def end_stream(self):
        self._record("end_stream")

    def print_ai_response(self, message):
        self._record("ai", message)

    def print_usage(self, usage):
        self._record("usage", usage)

    def print_token_warnings(self, response):
        self._record("headers", response.headers)

    def print_info(self, message):
        self._record("info", message)

    def print_success(self, message):
        self._record("success", message)

    def print_warning(self, message):
        self._record("warning", message)

    def print_error(self, error, recoverable=True):
        self._record("error", error)

    def print_summary(self, summary, title="Project Summary"):
        self._record("summary", summary)

    def print_modification_result(self, result):
        self.results.append(result)

    def print_goodbye(self):
        self._record("goodbye")

    def confirm(self, message, default=True):
        self._record("confirm", message)
        return self.confirms.pop(0) if self.confirms else default

    def ask_text(self, message, default=None, password=False):
        self._record("ask", message)
        return self.texts.pop(0) if self.texts else (default or "")

    async def prompt_input_async(self):
        if not self.inputs:
            raise EOFError
        value = self.inputs.pop(0)
        if isinstance(value, BaseException):
            raise value
        return value


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def config():
    return CoderConfig(api_url=API_URL, api_key="sk-test")


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_client(config, sleeper):
    """Build an AiClient whose requests are answered by ``handler``."""
    def factory(handler, **kwargs):
        return AiClient(
            kwargs.pop("client_config", config),
            transport=httpx.MockTransport(handler),
            retry_policy=RetryPolicy(sleep=sleeper),
            **kwargs,
        )
    return factory


@pytest.fixture
def ui():
    return RecordingUI()


def is_streaming(request: httpx.Request) -> bool:
    return request.headers.get("accept") == "text/event-stream"
