"""Pydantic schemas for structured data validation.

This package contains:
- analysis.py: Schemas for the note-analysis sections returned by the LLM

LLM outputs are checked against these schemas before anything downstream
uses them. Failures are reported as messages, not raised, so the invoker can
fold them into a retry.
"""

from viralnote.schemas.analysis import (
    MAX_COMMON_TAGS,
    SECTION_SCHEMAS,
    ContentStructure,
    CoverStyleAnalysis,
    RulesAdapter,
    TagStrategy,
    TitleFormulas,
    derive_common_tags,
    is_missing,
)

__all__ = [
    "MAX_COMMON_TAGS",
    "SECTION_SCHEMAS",
    "ContentStructure",
    "CoverStyleAnalysis",
    "RulesAdapter",
    "TagStrategy",
    "TitleFormulas",
    "derive_common_tags",
    "is_missing",
]
