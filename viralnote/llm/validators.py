"""Validation of analysis JSON returned by the LLM.

validate_json_response() is field-driven: the caller names the top-level
fields it needs, and each named field is checked twice.

  1. PRESENCE: the field exists and is not None, false, 0 or "". Empty
     arrays and objects are present; their contents are the shape check's job.
  2. SHAPE: fields with a schema (see viralnote.schemas.analysis) get a deep
     check. `rules` must be a non-empty array.

Every violation is collected before returning; nothing short-circuits after
the JSON has parsed. The invoker turns a non-empty error list into a
ResponseValidationError, which it retries like any other upstream failure.

Validation may repair the data: a tagStrategy without commonTags gets one
built from its tagCategories.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from viralnote.llm.errors import InvalidJSONError
from viralnote.llm.parser import extract_json
from viralnote.schemas.analysis import SECTION_SCHEMAS, RulesAdapter, is_missing
from viralnote.utils.logging import log, get_logger

MODULE = "llm.validators"
logger = get_logger()

DEFAULT_EXPECTED_FIELDS = ("titleFormulas", "contentStructure", "tagStrategy", "coverStyleAnalysis")


@dataclass
class ValidationResult:
    is_valid: bool
    data: Optional[Any] = None
    errors: list[str] = field(default_factory=list)


def _format_errors(name: str, exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        path = ".".join(str(part) for part in (name, *err["loc"]))
        messages.append(f"{path} {err['msg']}")
    return messages


def validate_rules(value: Any) -> list[str]:
    try:
        RulesAdapter.validate_python(value)
    except ValidationError as e:
        return _format_errors("rules", e)
    log.trace(logger, MODULE, "rules_ok", "rules array present", count=len(value))
    return []


def validate_section(data: dict, name: str) -> list[str]:
    """Deep-check one schema-backed section, writing repairs back into ``data``."""
    value = data.get(name)
    if not isinstance(value, dict):
        return [f"{name} is missing or not an object"]

    schema = SECTION_SCHEMAS[name]
    try:
        section = schema.model_validate(value)
    except ValidationError as e:
        return _format_errors(name, e)

    repaired = section.model_dump(by_alias=True, exclude_unset=True)
    if repaired != value:
        log.trace(logger, MODULE, "section_repaired", f"Filled in missing keys of {name}",
                  section=name, added=sorted(set(repaired) - set(value)))
    data[name] = repaired
    return []


def check_fields(data: dict, expected_fields: Iterable[str]) -> list[str]:
    """Run presence and shape checks for ``expected_fields`` against ``data``."""
    expected = list(expected_fields)
    errors = [
        f"missing required field: {name}"
        for name in expected
        if is_missing(data.get(name))
    ]

    for name in expected:
        if name == "rules":
            errors.extend(validate_rules(data.get("rules")))
        elif name in SECTION_SCHEMAS:
            errors.extend(validate_section(data, name))

    return errors


def validate_json_response(
    content: Optional[str],
    expected_fields: Iterable[str] = DEFAULT_EXPECTED_FIELDS,
) -> ValidationResult:
    """Parse ``content`` and check it against ``expected_fields``.

    Returns:
        ValidationResult with the parsed (possibly repaired) object and the
        ordered list of violations. ``is_valid`` is True iff there are none.
    """
    if not content or not content.strip():
        return ValidationResult(False, None, ["AI returned an empty response"])

    log.trace(logger, MODULE, "content_received", "Validating AI response",
              length=len(content), preview=content[:100])

    try:
        parsed = extract_json(content)
    except InvalidJSONError:
        log.warning(logger, MODULE, "invalid_json", "AI response is not valid JSON",
                    length=len(content))
        return ValidationResult(False, None, ["AI response is not valid JSON"])

    if not isinstance(parsed, dict):
        return ValidationResult(False, parsed, [f"expected a JSON object, got {type(parsed).__name__}"])

    log.trace(logger, MODULE, "json_parsed", "JSON parsed", keys=", ".join(parsed))

    errors = check_fields(parsed, expected_fields)
    return ValidationResult(not errors, parsed, errors)
