"""Tests for generate_stream(): fragment delivery, retries and the error sink."""

import pytest
from langchain_core.messages import AIMessageChunk

from viralnote.llm.client import ClientManager
from viralnote.llm.errors import (
    ConfigurationError,
    EmptyStreamError,
    RetriesExhaustedError,
    UpstreamHTMLError,
)
from viralnote.llm.invoker import AIInvoker


class Sinks:
    def __init__(self):
        self.fragments = []
        self.errors = []

    def on_fragment(self, fragment):
        self.fragments.append(fragment)

    def on_error(self, error):
        self.errors.append(error)


@pytest.mark.asyncio
async def test_fragments_delivered_in_order(make_invoker, sleeper):
    sinks = Sinks()
    invoker, handle = make_invoker([["a", "b", "c"]])

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert sinks.fragments == ["a", "b", "c"]
    assert sinks.errors == []
    assert handle.calls == ["model-a"]
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_langchain_chunks_and_empty_chunks(make_invoker):
    sinks = Sinks()
    chunks = [AIMessageChunk(content=""), AIMessageChunk(content="Hel"), AIMessageChunk(content="lo")]
    invoker, _ = make_invoker([chunks])

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert sinks.fragments == ["Hel", "lo"]
    assert sinks.errors == []


@pytest.mark.asyncio
async def test_empty_stream_is_retried(make_invoker, sleeper):
    sinks = Sinks()
    invoker, handle = make_invoker([[], [AIMessageChunk(content="")], ["ok"]])

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert sinks.fragments == ["ok"]
    assert sinks.errors == []
    assert handle.calls == ["model-a"] * 3
    assert sleeper.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhaustion_goes_to_error_sink_once(make_invoker, sleeper):
    sinks = Sinks()
    invoker, handle = make_invoker([[]], max_retries=1)

    result = await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert result is None
    assert sinks.fragments == []
    assert len(sinks.errors) == 1
    err = sinks.errors[0]
    assert isinstance(err, RetriesExhaustedError)
    assert err.models == ["model-a", "model-b"]
    assert isinstance(err.last_error, EmptyStreamError)
    assert handle.calls == ["model-a", "model-a", "model-b", "model-b"]


@pytest.mark.asyncio
async def test_configuration_error_goes_to_error_sink(sleeper):
    sinks = Sinks()
    invoker = AIInvoker(clients=ClientManager(), sleep=sleeper)

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert len(sinks.errors) == 1
    assert isinstance(sinks.errors[0], ConfigurationError)
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_async_sinks_are_awaited(make_invoker):
    received = []

    async def on_fragment(fragment):
        received.append(fragment)

    async def on_error(error):
        raise AssertionError(f"unexpected error: {error}")

    invoker, _ = make_invoker([["x", "y"]])
    await invoker.generate_stream("prompt", on_fragment, on_error)

    assert received == ["x", "y"]


@pytest.mark.asyncio
async def test_stream_failure_falls_back_to_next_model(make_invoker):
    sinks = Sinks()
    invoker, handle = make_invoker([ConnectionError("reset"), ["from b"]], max_retries=0)

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert handle.calls == ["model-a", "model-b"]
    assert sinks.fragments == ["from b"]
    assert sinks.errors == []


@pytest.mark.asyncio
async def test_html_stream_aborts_after_one_attempt(make_invoker, sleeper):
    sinks = Sinks()
    invoker, handle = make_invoker([UpstreamHTMLError(preview="<html>"), ["never"]])

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert handle.calls == ["model-a"]
    assert sleeper.delays == []
    assert sinks.fragments == []
    assert len(sinks.errors) == 1
    assert isinstance(sinks.errors[0], UpstreamHTMLError)


@pytest.mark.asyncio
async def test_html_endpoint_stream_goes_to_error_sink(make_http_invoker, html_page, sleeper):
    sinks = Sinks()
    invoker, upstream = make_http_invoker(html_page)

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert len(upstream.requests) == 1
    assert sleeper.delays == []
    assert sinks.fragments == []
    assert len(sinks.errors) == 1
    assert isinstance(sinks.errors[0], UpstreamHTMLError)
    assert "Please sign in" in sinks.errors[0].preview


@pytest.mark.asyncio
async def test_event_stream_fragments_reach_the_sink(make_http_invoker, event_stream, sleeper):
    sinks = Sinks()
    invoker, upstream = make_http_invoker(event_stream("Glow", "ing ", "skin"))

    await invoker.generate_stream("prompt", sinks.on_fragment, sinks.on_error)

    assert sinks.fragments == ["Glow", "ing ", "skin"]
    assert sinks.errors == []
    assert [r["model"] for r in upstream.requests] == ["model-a"]
    assert sleeper.delays == []
