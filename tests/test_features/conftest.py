"""Shared fixtures for gate, dispatcher and feature tests."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

import httpx
import openai
import pytest

from devsmentor.core.store import InMemoryUsageStore
from devsmentor.features.client import LLMClient
from devsmentor.features.dispatcher import ResilientDispatcher
from devsmentor.features.gate import EntitlementGate

PROVIDER_URL = "http://provider.test/v1"


# ---------------------------------------------------------------------------
# Clock and sleep doubles
# ---------------------------------------------------------------------------


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    """Stands in for time.sleep and remembers every delay."""

    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ---------------------------------------------------------------------------
# Provider doubles
# ---------------------------------------------------------------------------


def completion_body(content: Optional[str]) -> Dict[str, Any]:
    """Minimal chat.completion JSON as returned by OpenAI-compatible APIs."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def _status_error(status: int, headers: Optional[Dict[str, str]] = None, text: str = "error"):
    """Build the openai SDK exception raised for a non-2xx response."""
    request = httpx.Request("POST", f"{PROVIDER_URL}/chat/completions")
    response = httpx.Response(status, headers=headers or {}, text=text, request=request)
    if status == 429:
        return openai.RateLimitError("rate limited", response=response, body=None)
    return openai.APIStatusError(f"status {status}", response=response, body=None)


class MockLLMClient:
    """
    Scripted LLMClient replacement.

    Each call to complete() consumes the next scripted item: a string is
    returned as completion text, an exception is raised. The last item
    repeats once the script runs out.
    """

    def __init__(self, *script: Union[str, Exception]):
        self._script = list(script) or ['{"result": "mock"}']
        self.requests: List[Any] = []

    @property
    def model_id(self) -> str:
        return "mock/mock-model"

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def complete(self, request) -> str:
        index = min(len(self.requests), len(self._script) - 1)
        self.requests.append(request)
        item = self._script[index]
        if isinstance(item, Exception):
            raise item
        return item


class StubProvider:
    """
    httpx transport handler that plays back scripted HTTP responses.

    Items are (status, body, headers) tuples; a body string becomes the
    assistant message content on 200 and the raw body otherwise.
    """

    def __init__(self, *script):
        self._script = list(script)
        self.requests: List[httpx.Request] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        index = min(len(self.requests), len(self._script) - 1)
        self.requests.append(request)
        item = self._script[index]
        if isinstance(item, Exception):
            raise item
        status, body, headers = item
        if status == 200:
            return httpx.Response(200, json=completion_body(body), headers=headers)
        return httpx.Response(status, text=body, headers=headers)

    def sent_json(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


def _stub_client(provider: StubProvider, **kwargs: Any) -> LLMClient:
    """Real LLMClient whose HTTP traffic goes to ``provider``."""
    return LLMClient(
        provider=kwargs.pop("provider_name", "openai"),
        api_key="test-key",
        base_url=PROVIDER_URL,
        http_client=httpx.Client(transport=httpx.MockTransport(provider)),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    """Clock fixed at midday UTC."""
    return FixedClock(datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryUsageStore()


@pytest.fixture
def gate(store, clock):
    return EntitlementGate(store, clock=clock)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def mock_client():
    return MockLLMClient('{"result": "mock"}')


@pytest.fixture
def dispatcher_for(recording_sleep):
    """Build a ResilientDispatcher around a client with zero jitter."""

    def build(client) -> ResilientDispatcher:
        return ResilientDispatcher(client, sleep=recording_sleep, rng=lambda: 0.0)

    return build


@pytest.fixture
def status_error():
    """Factory for openai status errors: status_error(429, {"retry-after": "2"})."""
    return _status_error


@pytest.fixture
def mock_llm():
    """Factory for scripted clients: mock_llm('{"a": 1}', status_error(429))."""
    return MockLLMClient


@pytest.fixture
def stub_provider():
    """Factory for scripted HTTP providers: stub_provider((200, "{}", {}))."""
    return StubProvider


@pytest.fixture
def stub_client():
    """Wrap a transport handler in a real LLMClient."""
    return _stub_client
