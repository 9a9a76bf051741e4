"""Pydantic schemas for the note-analysis sections returned by the LLM.

Each schema checks one top-level section of the analysis JSON. The JSON keys
are camelCase (that is what the prompts ask for), so fields are declared with
aliases and extra keys are preserved untouched.

Missing and wrong-typed values produce the same short messages
("should be a non-empty array", "should be a string") so that the retry
log reads the same whichever way the model got it wrong.
"""

from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)
from pydantic_core import PydanticCustomError

MAX_COMMON_TAGS = 10


def is_missing(value: Any) -> bool:
    """True for an absent value: None, False, zero, NaN or the empty string.

    Empty arrays and objects are present. Models answer `{}` or `[]` for a
    section they have nothing to say about, and that still counts as an answer.
    """
    if value is None or value is False or value == "":
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0 or value != value
    return False


def _require_array(value: Any) -> Any:
    if not isinstance(value, list):
        raise PydanticCustomError("array_type", "should be an array")
    return value


def _require_non_empty_array(value: Any) -> Any:
    if not isinstance(value, list) or not value:
        raise PydanticCustomError("non_empty_array", "should be a non-empty array")
    return value


def _require_string(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        raise PydanticCustomError("string_type", "should be a string")
    return value


Array = Annotated[list[Any], BeforeValidator(_require_array)]
NonEmptyArray = Annotated[list[Any], BeforeValidator(_require_non_empty_array)]
Text = Annotated[str, BeforeValidator(_require_string)]

# `rules` is a bare array at the top level, not an object
RulesAdapter = TypeAdapter(NonEmptyArray)


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class TitleFormulas(_Section):
    suggested_formulas: NonEmptyArray = Field(
        default=None, alias="suggestedFormulas", validate_default=True,
        description="Reusable title patterns seen in the top notes",
    )
    common_keywords: Array = Field(
        default=None, alias="commonKeywords", validate_default=True,
    )


class ContentStructure(_Section):
    opening_hooks: NonEmptyArray = Field(default=None, alias="openingHooks", validate_default=True)
    ending_hooks: NonEmptyArray = Field(default=None, alias="endingHooks", validate_default=True)
    body_template: Text = Field(default=None, alias="bodyTemplate", validate_default=True)


class TagStrategy(_Section):
    """Hashtag strategy.

    Models regularly skip ``commonTags`` and only fill ``tagCategories``.
    In that case commonTags is built from coreKeywords followed by
    longTailKeywords, capped at MAX_COMMON_TAGS.
    """

    common_tags: Array = Field(default=None, alias="commonTags", validate_default=True)

    @model_validator(mode="before")
    @classmethod
    def fill_common_tags(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not is_missing(data.get("commonTags")):
            return data
        return {**data, "commonTags": derive_common_tags(data.get("tagCategories"))}


class CoverStyleAnalysis(_Section):
    common_styles: NonEmptyArray = Field(default=None, alias="commonStyles", validate_default=True)


def derive_common_tags(categories: Optional[dict]) -> list[Any]:
    """coreKeywords + longTailKeywords, first MAX_COMMON_TAGS entries."""
    if not isinstance(categories, dict):
        return []
    tags: list[Any] = []
    for key in ("coreKeywords", "longTailKeywords"):
        values = categories.get(key)
        if isinstance(values, list):
            tags.extend(values)
    return tags[:MAX_COMMON_TAGS]


SECTION_SCHEMAS: dict[str, type[_Section]] = {
    "titleFormulas": TitleFormulas,
    "contentStructure": ContentStructure,
    "tagStrategy": TagStrategy,
    "coverStyleAnalysis": CoverStyleAnalysis,
}
