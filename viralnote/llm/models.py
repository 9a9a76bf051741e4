"""Model list resolution.

AI_MODEL_NAME holds an ordered, comma-separated list of model names:

  AI_MODEL_NAME="gpt-4o-mini, gemini-2.5-flash, deepseek-chat"

The first entry is the primary model; the rest are degraded fallbacks tried
strictly in order once the previous model has used up its retries.
"""

from viralnote.config import model_names
from viralnote.llm.errors import ConfigurationError

# Model families whose OpenAI-compatible proxies reject response_format
JSON_MODE_INCOMPATIBLE = ("gemini",)


def parse_model_list(raw: str) -> list[str]:
    """Split a comma-separated model string, trimming and dropping blanks.

    Raises:
        ConfigurationError: If nothing is left after cleanup.
    """
    models = [name.strip() for name in (raw or "").split(",")]
    models = [name for name in models if name]
    if not models:
        raise ConfigurationError(
            f"No usable model names in AI_MODEL_NAME ({raw!r})",
            hint="Set AI_MODEL_NAME to one or more comma-separated model names.",
        )
    return models


def resolve_models() -> list[str]:
    """Read AI_MODEL_NAME (or the default) and return the ordered model list."""
    return parse_model_list(model_names())


def supports_json_mode(model: str) -> bool:
    """Whether the request may ask for response_format=json_object."""
    lowered = model.lower()
    return not any(family in lowered for family in JSON_MODE_INCOMPATIBLE)
