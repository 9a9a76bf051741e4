"""Shared fixtures: in-memory upstream fakes and a sleep that never waits."""

import json

import httpx
import pytest

from viralnote.llm.backoff import RetryPolicy
from viralnote.llm.client import ClientHandle
from viralnote.llm.invoker import AIInvoker

ENV_VARS = (
    "THIRD_PARTY_API_URL",
    "THIRD_PARTY_API_KEY",
    "AI_MODEL_NAME",
    "ENABLE_DEBUG_LOGGING",
)


class FakeHandle:
    """Scripted stand-in for ClientHandle.

    Each call consumes the next scripted item; the last item repeats once the
    script runs out. An exception instance is raised instead of returned.
    For streams, an item is an iterable of chunks.
    """

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def _next(self):
        if len(self.script) > 1:
            return self.script.pop(0)
        return self.script[0]

    async def complete(self, model, prompt, temperature=0.7):
        self.calls.append(model)
        item = self._next()
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream(self, model, prompt, temperature=0.7):
        self.calls.append(model)
        item = self._next()
        if isinstance(item, BaseException):
            raise item
        for chunk in item:
            yield chunk


class FakeClients:
    """Stand-in for ClientManager that always hands out the same FakeHandle."""

    def __init__(self, handle):
        self.handle = handle
        self.resets = 0

    def get_client(self):
        return self.handle

    def reset_client(self):
        self.resets += 1


class MockUpstream:
    """A real ClientHandle whose HTTP traffic is answered in-process.

    ``respond`` gets each httpx.Request and returns the httpx.Response the
    proxy would have sent. Request bodies are kept in ``requests``.
    """

    def __init__(self, respond):
        self.respond = respond
        self.requests = []
        self.handle = ClientHandle(
            base_url="https://proxy.test/v1",
            api_key="sk-test",
            http_async_client=httpx.AsyncClient(transport=httpx.MockTransport(self._dispatch)),
        )

    def _dispatch(self, request):
        self.requests.append(json.loads(request.content))
        return self.respond(request)

    def get_client(self):
        return self.handle

    def reset_client(self):
        pass


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AI_MODEL_NAME", "model-a,model-b")


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def make_invoker(sleeper):
    def _make(script, **policy):
        handle = FakeHandle(script)
        invoker = AIInvoker(
            clients=FakeClients(handle),
            policy=RetryPolicy(**policy),
            sleep=sleeper,
        )
        return invoker, handle
    return _make


@pytest.fixture
def make_http_invoker(sleeper):
    """AIInvoker over a real ClientHandle backed by httpx.MockTransport."""
    def _make(respond, **policy):
        upstream = MockUpstream(respond)
        invoker = AIInvoker(clients=upstream, policy=RetryPolicy(**policy), sleep=sleeper)
        return invoker, upstream
    return _make


@pytest.fixture
def html_page():
    """Responder for a proxy that serves its sign-in page on every path."""
    def _respond(request):
        return httpx.Response(
            200,
            headers={"content-type": "text/html; charset=utf-8"},
            text="<!DOCTYPE html><html><body>Please sign in</body></html>",
        )
    return _respond


def sse_body(*fragments):
    """A chat-completion event stream carrying ``fragments`` in order."""
    events = []
    for text in fragments:
        chunk = {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "created": 1700000000,
            "model": "model-a",
            "choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}],
        }
        events.append(f"data: {json.dumps(chunk)}\n\n")
    events.append("data: [DONE]\n\n")
    return "".join(events)


@pytest.fixture
def event_stream():
    """Responder factory: an SSE reply carrying the given fragments."""
    def _make(*fragments):
        def _respond(request):
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                text=sse_body(*fragments),
            )
        return _respond
    return _make


@pytest.fixture
def mock_upstream():
    return MockUpstream
