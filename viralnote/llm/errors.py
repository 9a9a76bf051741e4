"""Error taxonomy for the AI invocation layer.

Two families, split by what the retry loop does with them:

  Terminal (abort everything, no more retries or model fallbacks):
    ConfigurationError      → credentials/endpoint missing
    UpstreamHTMLError       → the endpoint served a web page, not API data

  Recoverable (consumed by the retry loop, invisible unless exhaustion):
    EmptyContentError       → nothing usable in the response
    InvalidJSONError        → content is not JSON
    ResponseValidationError → JSON is missing fields or has the wrong shape
    EmptyStreamError        → a stream finished without a single fragment

Anything else raised by the upstream SDK (timeouts, 5xx, connection resets)
is treated as recoverable too.

When every model has failed, the caller receives RetriesExhaustedError.
Errors that reach callers carry a short technical message, a category label
and a remediation hint so the UI can display them directly.
"""

from typing import Any, Optional


class AIServiceError(Exception):
    """Base for errors that are shown to the end user."""

    def __init__(
        self,
        message: str,
        category: str,
        hint: str,
        retryable: bool,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.hint = hint
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Payload for API responses / UI display."""
        return {
            "message": self.message,
            "category": self.category,
            "hint": self.hint,
            "retryable": self.retryable,
        }


class ConfigurationError(AIServiceError):
    """Terminal: retrying cannot help until the configuration is fixed."""

    def __init__(
        self,
        message: str,
        category: str = "AI service misconfigured",
        hint: str = (
            "Check the environment: THIRD_PARTY_API_URL and THIRD_PARTY_API_KEY "
            "must both be set to valid values."
        ),
    ):
        super().__init__(message, category, hint, retryable=False)


class UpstreamHTMLError(ConfigurationError):
    """The API endpoint answered with an HTML page instead of API data."""

    def __init__(self, preview: str = ""):
        super().__init__(
            "AI endpoint returned an HTML page instead of an API response",
            category="AI endpoint misconfigured",
            hint=(
                "THIRD_PARTY_API_URL most likely points at a website rather than "
                "an OpenAI-compatible API. Check the base URL (it usually ends in /v1)."
            ),
        )
        self.preview = preview


class RecoverableError(Exception):
    """A failed attempt that the retry loop may try again."""


class EmptyContentError(RecoverableError):
    def __init__(self, message: str = "AI returned empty content or an unrecognised response format"):
        super().__init__(message)


class InvalidJSONError(RecoverableError):
    def __init__(self, message: str = "AI response is not valid JSON", raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class ResponseValidationError(RecoverableError):
    """JSON parsed but failed field checks. Carries every violation found."""

    def __init__(self, errors: list[str]):
        super().__init__(f"AI response validation failed: {', '.join(errors)}")
        self.errors = list(errors)


class EmptyStreamError(RecoverableError):
    def __init__(self, message: str = "AI stream finished without returning any content"):
        super().__init__(message)


class RetriesExhaustedError(AIServiceError):
    """Every model/attempt combination failed. The caller may try again later."""

    def __init__(
        self,
        operation: str,
        models: list[str],
        attempts_per_model: int,
        last_error: Optional[BaseException],
        category: str = "AI analysis failed",
    ):
        self.models = list(models)
        self.attempts_per_model = attempts_per_model
        self.last_error = last_error
        last_message = str(last_error) if last_error is not None else "unknown error"
        super().__init__(
            f"{operation} failed after trying all models [{', '.join(self.models)}] "
            f"with {attempts_per_model} attempts each: {last_message}",
            category=category,
            hint="Please try again later. If the problem persists, contact support.",
            retryable=True,
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["models"] = self.models
        data["attempts_per_model"] = self.attempts_per_model
        return data


TERMINAL_ERRORS = (ConfigurationError,)
