"""Environment-backed configuration.

Every value is read from the environment at the moment it is needed, so a
changed variable takes effect on the next decision that consults it. The only
thing that caches configuration is the LLM client handle, which is reset
explicitly (see viralnote.llm.client.ClientManager.reset_client).

  THIRD_PARTY_API_URL   → OpenAI-compatible base URL (required)
  THIRD_PARTY_API_KEY   → API key (required)
  AI_MODEL_NAME         → comma-separated model list, primary first
  ENABLE_DEBUG_LOGGING  → "true" for verbose diagnostics
"""

import os
from typing import Optional

DEFAULT_AI_MODEL = "gpt-4o-mini"

# Sampling temperature for every request. Copywriting benefits from some
# variety, but the JSON analyses still need to be stable.
TEMPERATURE = 0.7


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable, treating blank values as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def api_url() -> Optional[str]:
    return get_env("THIRD_PARTY_API_URL")


def api_key() -> Optional[str]:
    return get_env("THIRD_PARTY_API_KEY")


def model_names() -> str:
    """Raw comma-separated model configuration."""
    return get_env("AI_MODEL_NAME", DEFAULT_AI_MODEL)


def debug_logging_enabled() -> bool:
    return os.getenv("ENABLE_DEBUG_LOGGING", "").strip().lower() == "true"
