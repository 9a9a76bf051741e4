"""Upstream response shape classification.

OpenAI-compatible proxies do not always answer with a chat-completion object.
Observed in the wild:

  - A ChatCompletion (or the equivalent dict)          → STRUCTURED
  - The completion text as a bare string body          → TEXT
  - A JSON array of string fragments, e.g. ['{', '"']  → FRAGMENTS
  - An HTML page (wrong base URL, login wall, 404 page) → HTML

classify() is the only place that inspects the raw object. Everything after
works on the tagged RawResponse, and extract_text() handles every tag.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from viralnote.llm.errors import EmptyContentError, UpstreamHTMLError
from viralnote.utils.logging import log, get_logger

MODULE = "llm.normalizer"
logger = get_logger()

HTML_PREFIXES = ("<!doctype", "<html")


class ResponseShape(str, Enum):
    HTML = "html"
    TEXT = "text"
    FRAGMENTS = "fragments"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class RawResponse:
    """An upstream result tagged with its shape.

    ``text`` is filled for HTML/TEXT/FRAGMENTS; ``payload`` keeps the
    original object for STRUCTURED.
    """

    shape: ResponseShape
    text: str = ""
    payload: Any = None


def looks_like_html(text: str) -> bool:
    """True when ``text`` starts with a doctype or <html> tag."""
    return text.strip().lower().startswith(HTML_PREFIXES)


def _join_fragments(parts: list) -> str:
    pieces = []
    for part in parts:
        if isinstance(part, str):
            pieces.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            # OpenAI/LangChain content blocks: {"type": "text", "text": "..."}
            pieces.append(part["text"])
    return "".join(pieces)


def classify(raw: Any) -> RawResponse:
    """Tag a raw upstream result with its shape."""
    if isinstance(raw, (list, tuple)):
        text = _join_fragments(list(raw))
        shape = ResponseShape.HTML if looks_like_html(text) else ResponseShape.FRAGMENTS
        return RawResponse(shape, text=text)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        shape = ResponseShape.HTML if looks_like_html(raw) else ResponseShape.TEXT
        return RawResponse(shape, text=raw)
    return RawResponse(ResponseShape.STRUCTURED, payload=raw)


def _field(obj: Any, name: str) -> Any:
    """Attribute or key access, for SDK objects and plain dicts alike."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _content_as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return _join_fragments(content)
    return ""


def first_choice_content(payload: Any) -> str:
    """choices[0].message.content of a chat completion, or ''."""
    choices = _field(payload, "choices")
    if not choices:
        return ""
    message = _field(choices[0], "message")
    return _content_as_text(_field(message, "content"))


def extract_text(response: RawResponse) -> str:
    """Pull the text payload out of a classified response.

    Raises:
        UpstreamHTMLError: HTML page; the whole invocation must stop.
        EmptyContentError: No usable text; the attempt may be retried.
    """
    if response.shape is ResponseShape.HTML:
        log.error(logger, MODULE, "html_response",
                  "Upstream returned an HTML page instead of API data",
                  preview=response.text.strip()[:120])
        raise UpstreamHTMLError(preview=response.text.strip()[:500])

    if response.shape is ResponseShape.FRAGMENTS:
        log.trace(logger, MODULE, "fragments_joined",
                  "Response was an array of fragments, joined into a string",
                  length=len(response.text))
        text = response.text
    elif response.shape is ResponseShape.TEXT:
        log.trace(logger, MODULE, "plain_string", "Response was a bare string")
        text = response.text
    elif response.shape is ResponseShape.STRUCTURED:
        log.trace(logger, MODULE, "chat_completion", "Response was a chat completion object")
        text = first_choice_content(response.payload)
    else:
        raise AssertionError(f"Unhandled response shape: {response.shape}")

    if not text or not text.strip():
        log.trace(logger, MODULE, "empty_content", "No usable content in response",
                  shape=response.shape.value, raw=repr(response.payload)[:2000])
        raise EmptyContentError()
    return text


def normalize(raw: Any) -> str:
    """classify() + extract_text() in one step."""
    return extract_text(classify(raw))


def extract_fragment(chunk: Any) -> Optional[str]:
    """Text carried by one streamed chunk, or None if it carries none.

    Accepts LangChain message chunks (``.content``), OpenAI stream chunks
    (``choices[0].delta.content``) and bare strings some proxies emit.
    """
    if isinstance(chunk, str):
        return chunk or None
    content = _field(chunk, "content")
    if content is not None:
        return _content_as_text(content) or None
    choices = _field(chunk, "choices")
    if choices:
        delta = _field(choices[0], "delta")
        return _content_as_text(_field(delta, "content")) or None
    log.trace(logger, MODULE, "unknown_chunk", "Ignoring stream chunk of unknown shape",
              chunk_type=type(chunk).__name__)
    return None
