"""LLM invocation package.

This package provides a unified interface for all AI calls:

  from viralnote.llm import analyze, generate_stream

  # Validated analysis (JSON object with the requested sections)
  data = await analyze(prompt, ["titleFormulas", "tagStrategy"])

  # Streaming generation
  await generate_stream(prompt, on_fragment=send_to_client, on_error=report)

Architecture:
  client.py     → ClientHandle / ClientManager (lazy, resettable)
  models.py     → AI_MODEL_NAME parsing, JSON-mode family rule
  backoff.py    → RetryPolicy and the (model, attempt) state machine
  normalizer.py → Raw response shape classification and text extraction
  parser.py     → JSON extraction from raw model output
  validators.py → Field presence and section shape checks
  invoker.py    → Retry / fallback orchestration for both entry points
  errors.py     → Terminal vs recoverable error taxonomy

The invoker implements defense-in-depth:
  1. SHAPE: Recover text from string, fragment-array and object responses
  2. PARSE: Extract JSON, handling markdown wrappers
  3. VALIDATE: Required fields plus per-section schemas
  4. RETRY: Exponential backoff per model, then the next model
  5. ABORT: Configuration errors stop everything immediately
"""

# Client access
from viralnote.llm.client import ClientHandle, ClientManager

# Retry policy
from viralnote.llm.backoff import FallbackState, RetryPolicy

# Unified invocation
from viralnote.llm.invoker import (
    AIInvoker,
    analyze,
    generate_stream,
    ai_invoker,
    reset_client,
    set_retry_policy,
)

# Errors
from viralnote.llm.errors import (
    AIServiceError,
    ConfigurationError,
    EmptyContentError,
    EmptyStreamError,
    InvalidJSONError,
    RecoverableError,
    ResponseValidationError,
    RetriesExhaustedError,
    UpstreamHTMLError,
)

# Response handling
from viralnote.llm.models import parse_model_list, resolve_models
from viralnote.llm.normalizer import RawResponse, ResponseShape, classify, normalize
from viralnote.llm.parser import extract_json
from viralnote.llm.validators import ValidationResult, validate_json_response

__all__ = [
    # Client
    "ClientHandle",
    "ClientManager",
    # Retry
    "FallbackState",
    "RetryPolicy",
    # Invoker
    "AIInvoker",
    "analyze",
    "generate_stream",
    "ai_invoker",
    "reset_client",
    "set_retry_policy",
    # Errors
    "AIServiceError",
    "ConfigurationError",
    "EmptyContentError",
    "EmptyStreamError",
    "InvalidJSONError",
    "RecoverableError",
    "ResponseValidationError",
    "RetriesExhaustedError",
    "UpstreamHTMLError",
    # Response handling
    "parse_model_list",
    "resolve_models",
    "RawResponse",
    "ResponseShape",
    "classify",
    "normalize",
    "extract_json",
    "ValidationResult",
    "validate_json_response",
]
