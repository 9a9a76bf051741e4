"""JSON extraction from model output.

Models running without response_format=json_object (Gemini behind an
OpenAI-compatible proxy, mostly) like to wrap their JSON in markdown fences,
<think> blocks or a sentence of preamble. This module recovers the JSON value
from those wrappers. Anything it cannot recover is InvalidJSONError, which
the invoker retries.
"""

import json
import re
from typing import Any, Optional

from viralnote.llm.errors import InvalidJSONError
from viralnote.utils.logging import log, get_logger

MODULE = "llm.parser"
logger = get_logger()

THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
CODE_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def strip_think_tags(raw: str) -> str:
    """Drop <think>...</think> reasoning blocks."""
    return THINK_BLOCK.sub("", raw).strip()


def extract_json(raw: str) -> Any:
    """Parse JSON out of model output.

    Handles, in order:
    - Raw JSON: {"key": "value"}
    - <think> blocks before the answer
    - Markdown blocks: ```json\\n{"key": "value"}\\n```
    - Preamble/trailing text around a single balanced {...} object

    Raises:
        InvalidJSONError: If no JSON value can be recovered.
    """
    text = raw.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    stripped = strip_think_tags(text)
    if stripped != text:
        log.debug(logger, MODULE, "stripped_think", "Stripped <think> block from response")
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            pass

    fenced = CODE_FENCE.search(stripped)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except json.JSONDecodeError:
            pass

    start = stripped.find("{")
    if start != -1:
        candidate = _extract_balanced(stripped[start:])
        if candidate:
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                pass

    log.trace(logger, MODULE, "parse_failed", "Could not recover JSON from response",
              length=len(raw), raw=raw[:2000])
    raise InvalidJSONError(raw_output=raw)


def _extract_balanced(text: str) -> Optional[str]:
    """Return the {...} expression that opens at text[0], or None if unbalanced."""
    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[:i + 1]

    return None
