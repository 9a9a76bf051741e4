"""LLM client configuration.

All upstream calls go to a third-party, OpenAI-compatible chat-completion
API configured through the environment:

  THIRD_PARTY_API_URL → base URL (e.g. https://proxy.example.com/v1)
  THIRD_PARTY_API_KEY → API key

ClientManager builds a ClientHandle lazily on first use and keeps it until
reset_client() is called (after the environment changed). A missing URL or
key is a ConfigurationError, which the invoker never retries.

Both call styles go through the OpenAI async client under LangChain's
ChatOpenAI, so proxy quirks (string bodies, arrays, HTML pages) reach the
normalizer unaltered:

  complete() → chat.completions.create(), the raw, unclassified result.
  stream()   → chat.completions.with_raw_response.create(stream=True).
               The content type is checked before any chunk is parsed.
               A body that is not an event stream (an HTML login page, or a
               whole completion from a proxy that ignored stream=true) is
               normalized as a single fragment, so HTML raises
               UpstreamHTMLError instead of looking like an empty stream.

SDK-level retries are disabled; the invoker owns the retry policy.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from langchain_openai import ChatOpenAI

from viralnote import config
from viralnote.llm.errors import ConfigurationError
from viralnote.llm.models import supports_json_mode
from viralnote.llm.normalizer import normalize
from viralnote.utils.logging import log, get_logger

MODULE = "llm.client"
logger = get_logger()

EVENT_STREAM = "text/event-stream"


def decode_body(body: bytes) -> Any:
    """JSON-decode a response body, falling back to its text."""
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


@dataclass(frozen=True)
class ClientHandle:
    """Immutable connection settings for the upstream API.

    ``http_async_client`` is handed to ChatOpenAI as-is (custom transports,
    proxies). None lets the SDK build its own.
    """

    base_url: str
    api_key: str
    http_async_client: Optional[Any] = field(default=None, compare=False, repr=False)

    def chat_model(self, model: str, temperature: float = config.TEMPERATURE) -> ChatOpenAI:
        """ChatOpenAI bound to ``model``. Cheap to build; one per request."""
        return ChatOpenAI(
            base_url=self.base_url,
            api_key=self.api_key,
            model=model,
            temperature=temperature,
            max_retries=0,
            http_async_client=self.http_async_client,
        )

    @staticmethod
    def build_request(
        model: str,
        prompt: str,
        temperature: float = config.TEMPERATURE,
        json_mode: bool = True,
    ) -> dict[str, Any]:
        """Request body: the prompt as a single user message.

        JSON-object response mode is requested when ``json_mode`` is set,
        unless the model family is known to reject it.
        """
        request: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if json_mode and supports_json_mode(model):
            request["response_format"] = {"type": "json_object"}
        return request

    async def complete(self, model: str, prompt: str, temperature: float = config.TEMPERATURE) -> Any:
        """One non-streaming completion. Returns the raw, unclassified result."""
        llm = self.chat_model(model, temperature)
        request = self.build_request(model, prompt, temperature)
        return await llm.root_async_client.chat.completions.create(**request)

    async def stream(
        self, model: str, prompt: str, temperature: float = config.TEMPERATURE
    ) -> AsyncIterator[Any]:
        """Stream completion chunks for ``prompt`` as they arrive.

        Raises:
            UpstreamHTMLError: The endpoint answered with an HTML page.
        """
        llm = self.chat_model(model, temperature)
        request = self.build_request(model, prompt, temperature, json_mode=False)
        raw = await llm.root_async_client.chat.completions.with_raw_response.create(
            **request, stream=True,
        )
        response = raw.http_response
        try:
            content_type = raw.headers.get("content-type", "")
            if EVENT_STREAM not in content_type.lower():
                body = await response.aread()
                log.trace(logger, MODULE, "stream_not_sse",
                          "Streaming request answered with a whole body",
                          model=model, content_type=content_type, length=len(body))
                yield normalize(decode_body(body))
                return
            async for chunk in raw.parse():
                yield chunk
        finally:
            await response.aclose()


class ClientManager:
    """Owns the lazily-built, resettable ClientHandle."""

    def __init__(self) -> None:
        self._handle: Optional[ClientHandle] = None

    def get_client(self) -> ClientHandle:
        """Return the cached handle, building it from the environment if needed.

        Raises:
            ConfigurationError: THIRD_PARTY_API_URL or THIRD_PARTY_API_KEY unset.
        """
        if self._handle is None:
            base_url = config.api_url()
            api_key = config.api_key()
            if not base_url or not api_key:
                missing = [
                    name for name, value in (
                        ("THIRD_PARTY_API_URL", base_url),
                        ("THIRD_PARTY_API_KEY", api_key),
                    ) if not value
                ]
                log.error(logger, MODULE, "config_failed", "AI service configuration incomplete",
                          missing=", ".join(missing))
                raise ConfigurationError(
                    f"AI service configuration incomplete: {', '.join(missing)} not set"
                )
            self._handle = ClientHandle(base_url=base_url, api_key=api_key)
            log.debug(logger, MODULE, "client_init", "LLM client handle created",
                      base_url=base_url)
        return self._handle

    def reset_client(self) -> None:
        """Forget the cached handle; the next get_client() re-reads the environment."""
        self._handle = None
        log.info(logger, MODULE, "client_reset", "LLM client handle reset")
