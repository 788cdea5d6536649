"""
Tunable matching policies for the brainstorming pipeline.

Keyword lists, parse precedence and length thresholds live here as named,
immutable models so they can be configured and tested apart from the
pipeline mechanics. ``Settings`` builds the production instances.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared_utils.constants import Defaults


class TriggerPolicy(BaseModel):
    """Phrases that signal a request for creative input."""

    model_config = ConfigDict(frozen=True)

    phrases: Tuple[str, ...] = Defaults.TRIGGER_PHRASES
    min_length: int = Field(default=Defaults.MIN_TRIGGER_LENGTH, ge=0)

    @field_validator("phrases")
    @classmethod
    def normalize_phrases(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Lower-case phrases and drop blanks, keeping first-seen order."""
        seen = []
        for phrase in v:
            cleaned = phrase.strip().lower()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return tuple(seen)


class ParseStrategy(str, Enum):
    """Candidate split strategies."""

    NUMBERED = "numbered"
    LINES = "lines"
    DELIMITED = "delimited"


class ParsePolicy(BaseModel):
    """How a free-text generation is split into candidate suggestions."""

    model_config = ConfigDict(frozen=True)

    precedence: Tuple[ParseStrategy, ...] = (
        ParseStrategy.NUMBERED,
        ParseStrategy.LINES,
        ParseStrategy.DELIMITED,
    )
    min_suggestion_length: int = Field(default=Defaults.MIN_SUGGESTION_LENGTH, ge=0)
    banned_words: Tuple[str, ...] = ("brainstorm",)

    @field_validator("precedence")
    @classmethod
    def validate_precedence(cls, v: Tuple[ParseStrategy, ...]) -> Tuple[ParseStrategy, ...]:
        """Each strategy may appear at most once."""
        if len(set(v)) != len(v):
            raise ValueError("precedence must not repeat a strategy")
        return v


class DedupPolicy(BaseModel):
    """Near-duplicate detection for suggestion texts."""

    model_config = ConfigDict(frozen=True)

    prefix_overlap: int = Field(default=Defaults.DEDUP_PREFIX_OVERLAP, ge=1)


class OrchestrationPolicy(BaseModel):
    """Bounds on the context sent to, and ideas taken from, one generation."""

    model_config = ConfigDict(frozen=True)

    window_size: int = Field(default=Defaults.TRANSCRIPT_WINDOW, ge=1)
    min_context_length: int = Field(default=Defaults.MIN_CONTEXT_LENGTH, ge=0)
    max_suggestions: int = Field(default=Defaults.MAX_SUGGESTIONS_PER_TRIGGER, ge=1)
    generation_timeout: float = Field(default=Defaults.GENERATION_TIMEOUT, gt=0)
    context_separator: str = "\n"
