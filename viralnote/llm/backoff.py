"""Retry policy, backoff delays, and the model-fallback state machine.

The invoker walks a grid of (model, attempt) pairs:

  model 0: attempt 0 → sleep → attempt 1 → sleep → ... → attempt max_retries
  model 1: attempt 0 → sleep → ...                      (no sleep between models)
  ...

FallbackState owns that cursor. The invoker only asks it three things:
which model to use now, what to do after a failure, and whether anything is
left. Terminal errors never reach FallbackState; the invoker lets them
propagate before recording anything.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RetryPolicy(BaseModel):
    """Immutable retry settings. Delays are in seconds."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=2, ge=0)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)

    def delay(self, attempt: int) -> float:
        """Backoff before the retry that follows 0-based ``attempt``.

        delay(a) = min(base_delay * backoff_multiplier ** a, max_delay)
        """
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")
        return min(self.base_delay * self.backoff_multiplier ** attempt, self.max_delay)

    def merged(self, **overrides: Any) -> "RetryPolicy":
        """Return a new policy with ``overrides`` applied on top of this one.

        Unknown keys raise TypeError; values are re-validated.
        """
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise TypeError(f"Unknown retry policy fields: {sorted(unknown)}")
        return type(self).model_validate({**self.model_dump(), **overrides})

    @property
    def attempts_per_model(self) -> int:
        return self.max_retries + 1


@dataclass
class FallbackState:
    """Cursor over the (model, attempt) grid for a single invocation."""

    models: list[str]
    policy: RetryPolicy
    model_index: int = 0
    attempt: int = 0
    total_attempts: int = 0
    last_error: Optional[BaseException] = None

    @property
    def exhausted(self) -> bool:
        return self.model_index >= len(self.models)

    @property
    def model(self) -> str:
        return self.models[self.model_index]

    @property
    def next_model(self) -> Optional[str]:
        nxt = self.model_index + 1
        return self.models[nxt] if nxt < len(self.models) else None

    def begin_attempt(self) -> str:
        """Mark the current cell as attempted and return its model."""
        self.total_attempts += 1
        return self.model

    def record_failure(self, error: BaseException) -> Optional[float]:
        """Advance past a recoverable failure.

        Returns:
            Seconds to sleep before retrying the same model, or None when the
            cursor moved on to the next model (or ran out of models).
        """
        self.last_error = error
        if self.attempt < self.policy.max_retries:
            delay = self.policy.delay(self.attempt)
            self.attempt += 1
            return delay
        self.model_index += 1
        self.attempt = 0
        return None
