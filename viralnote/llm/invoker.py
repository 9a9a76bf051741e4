"""Resilient LLM invocation: retry, backoff, model fallback, validation.

Two entry points share one orchestration loop:

  analyze(prompt, expected_fields)              → validated dict
  generate_stream(prompt, on_fragment, on_error) → fragments pushed to a sink

Each attempt runs the same pipeline:

  1. CLIENT: get the shared ClientHandle (ConfigurationError if unset)
  2. INVOKE: one request to the current model
  3. NORMALIZE: classify the raw shape and pull out the text
  4. VALIDATE: parse JSON, check expected fields (analyze only)

Failure handling:
  - ConfigurationError (incl. UpstreamHTMLError) aborts the whole call.
    Retrying a misconfigured endpoint, or moving to another model on the
    same endpoint, cannot succeed.
  - Anything else is recorded as the last error. The same model is retried
    after a backoff sleep until max_retries is used up, then the next model
    starts over at attempt 0.
  - When no model is left, RetriesExhaustedError names every model tried.

Sleeps use asyncio, so a call waiting out its backoff never blocks other
calls in flight. Calls share the ClientHandle but nothing else.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Iterable, Optional

from viralnote.config import debug_logging_enabled
from viralnote.llm.backoff import FallbackState, RetryPolicy
from viralnote.llm.client import ClientHandle, ClientManager
from viralnote.llm.errors import (
    AIServiceError,
    EmptyStreamError,
    InvalidJSONError,
    ResponseValidationError,
    RetriesExhaustedError,
    TERMINAL_ERRORS,
)
from viralnote.llm.models import resolve_models
from viralnote.llm.normalizer import extract_fragment, normalize
from viralnote.llm.validators import DEFAULT_EXPECTED_FIELDS, validate_json_response
from viralnote.utils.logging import log, get_logger

MODULE = "llm.invoker"
logger = get_logger()

AttemptFunc = Callable[[ClientHandle, str], Awaitable[Any]]
FragmentSink = Callable[[str], Any]
ErrorSink = Callable[[AIServiceError], Any]


async def _call_sink(sink: Callable[[Any], Any], value: Any) -> None:
    """Invoke a caller sink that may be a plain function or a coroutine."""
    result = sink(value)
    if inspect.isawaitable(result):
        await result


class AIInvoker:
    """Runs prompts against the configured model list with retries."""

    def __init__(
        self,
        clients: Optional[ClientManager] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.clients = clients or ClientManager()
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def set_retry_policy(self, **overrides: Any) -> RetryPolicy:
        """Merge ``overrides`` over the current policy. Calls already running keep theirs."""
        self._policy = self._policy.merged(**overrides)
        log.info(logger, MODULE, "policy_updated", "Retry policy updated",
                 **self._policy.model_dump())
        return self._policy

    def reset_client(self) -> None:
        self.clients.reset_client()

    async def _run(self, operation: str, category: str, attempt_fn: AttemptFunc) -> Any:
        """Drive ``attempt_fn`` across the (model, attempt) grid."""
        models = resolve_models()
        policy = self._policy
        state = FallbackState(models=models, policy=policy)

        log.debug(logger, MODULE, f"{operation}_start", f"Starting {operation}",
                  models=", ".join(models), max_retries=policy.max_retries)

        while not state.exhausted:
            attempt = state.attempt
            model = state.begin_attempt()
            log.trace(logger, MODULE, "attempt_start", f"{operation} attempt",
                      model=model, attempt=attempt + 1, of=policy.attempts_per_model)
            try:
                handle = self.clients.get_client()
                result = await attempt_fn(handle, model)
            except TERMINAL_ERRORS as e:
                log.error(logger, MODULE, f"{operation}_failed",
                          "Configuration error, aborting without retry",
                          error=str(e), error_type=type(e).__name__,
                          model=model, attempt=attempt + 1)
                raise
            except Exception as e:
                log.warning(logger, MODULE, "attempt_failed", f"{operation} attempt failed",
                            model=model, attempt=attempt + 1, error=str(e),
                            error_type=type(e).__name__)
                next_model = state.next_model
                delay = state.record_failure(e)
                if delay is not None:
                    log.trace(logger, MODULE, "backoff", "Sleeping before retry",
                              model=model, delay_s=delay)
                    await self._sleep(delay)
                elif next_model is not None:
                    log.warning(logger, MODULE, "model_fallback",
                                f"Model {model} exhausted, falling back to {next_model}",
                                model=model, next_model=next_model)
                continue

            log.info(logger, MODULE, f"{operation}_done", f"{operation} succeeded",
                     model=model, attempt=attempt + 1, total_attempts=state.total_attempts)
            return result

        log.error(logger, MODULE, f"{operation}_exhausted", "All models failed",
                  error=str(state.last_error), models=", ".join(models),
                  total_attempts=state.total_attempts)
        raise RetriesExhaustedError(
            operation.capitalize(),
            models,
            policy.attempts_per_model,
            state.last_error,
            category=category,
        )

    async def analyze(
        self,
        prompt: str,
        expected_fields: Iterable[str] = DEFAULT_EXPECTED_FIELDS,
    ) -> dict:
        """Run an analysis prompt and return the validated JSON object.

        Raises:
            ConfigurationError: Missing credentials or an HTML endpoint.
            RetriesExhaustedError: Every model and attempt failed.
        """
        expected = list(expected_fields)

        async def attempt(handle: ClientHandle, model: str) -> dict:
            raw = await handle.complete(model, prompt)
            if debug_logging_enabled():
                log.trace(logger, MODULE, "raw_response", "Raw upstream response",
                          model=model, raw_type=type(raw).__name__, raw=repr(raw)[:2000])
            content = normalize(raw)
            result = validate_json_response(content, expected)
            if result.is_valid:
                return result.data
            if result.data is None:
                raise InvalidJSONError("; ".join(result.errors), raw_output=content)
            raise ResponseValidationError(result.errors)

        return await self._run("analysis", "AI analysis failed", attempt)

    async def generate_stream(
        self,
        prompt: str,
        on_fragment: FragmentSink,
        on_error: ErrorSink,
    ) -> None:
        """Stream a completion, pushing each text fragment to ``on_fragment``.

        Never raises for AI failures. ``on_error`` is called exactly once with
        the ConfigurationError or RetriesExhaustedError instead; a return
        without that call means the stream completed.

        A failed attempt is retried from the start, so fragments delivered
        before a mid-stream failure are delivered again.
        """

        async def attempt(handle: ClientHandle, model: str) -> int:
            count = 0
            async for chunk in handle.stream(model, prompt):
                fragment = extract_fragment(chunk)
                if fragment:
                    count += 1
                    await _call_sink(on_fragment, fragment)
            if count == 0:
                raise EmptyStreamError()
            return count

        try:
            await self._run("stream", "Content generation failed", attempt)
        except AIServiceError as e:
            await _call_sink(on_error, e)


# Process-wide instance, shared by the module-level helpers below
ai_invoker = AIInvoker()


async def analyze(prompt: str, expected_fields: Iterable[str] = DEFAULT_EXPECTED_FIELDS) -> dict:
    return await ai_invoker.analyze(prompt, expected_fields)


async def generate_stream(prompt: str, on_fragment: FragmentSink, on_error: ErrorSink) -> None:
    await ai_invoker.generate_stream(prompt, on_fragment, on_error)


def set_retry_policy(**overrides: Any) -> RetryPolicy:
    return ai_invoker.set_retry_policy(**overrides)


def reset_client() -> None:
    ai_invoker.reset_client()
