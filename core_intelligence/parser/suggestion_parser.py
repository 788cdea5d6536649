"""
Splits free-text generations into discrete brainstorming suggestions.

Split strategies, tried in the policy's precedence order:

- numbered:  ``1. idea`` / ``2) idea`` at line starts (an item may wrap onto
             following lines), or two or more such markers inline
- lines:     one candidate per non-empty line (needs two or more lines)
- delimited: pipe or semicolon separated segments (needs two or more)

When no strategy applies, the whole response is one candidate. Candidates are
trimmed, stripped of bullets and numbering, then dropped when too short or
when they mention a banned word (meta-commentary such as "let's brainstorm").
"""

from __future__ import annotations

import re
from typing import Any, List, Optional

from domain.policies import ParsePolicy, ParseStrategy
from shared_utils.constants import LogScope
from shared_utils.error_handler import ParseFailure
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.PARSER)


class SuggestionParser:
    """Parser for generated brainstorm text.

    All patterns are class attributes so they can be inspected in tests.
    """

    LINE_NUMBER_PATTERN: re.Pattern = re.compile(r"^\s*\d{1,2}[.)]\s+", re.MULTILINE)
    INLINE_NUMBER_PATTERN: re.Pattern = re.compile(r"(?:^|(?<=\s))\d{1,2}[.)]\s+")
    DELIMITER_PATTERN: re.Pattern = re.compile(r"[|;]")
    BLANK_LINE_PATTERN: re.Pattern = re.compile(r"\n\s*\n")
    LEADING_MARKER_PATTERN: re.Pattern = re.compile(
        r"^(?:[-*•·–—>]+|\(?\d{1,2}[.)])(?=\s|$)\s*"
    )

    def __init__(self, policy: Optional[ParsePolicy] = None) -> None:
        self.policy = policy or ParsePolicy()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, response: Any) -> List[str]:
        """Return cleaned candidates in response order.

        Raises:
            ParseFailure: When the response is not text or nothing survives
                cleaning and filtering.
        """
        if not isinstance(response, str) or not response.strip():
            raise ParseFailure("Generated response is empty")

        segments = self.split(response)
        candidates = [c for c in (self.clean(s) for s in segments) if self.is_usable(c)]

        logger.debug(
            "suggestions_parsed",
            segment_count=len(segments),
            candidate_count=len(candidates),
        )

        if not candidates:
            raise ParseFailure(
                "No usable suggestions in generated response",
                context={"segment_count": len(segments)},
            )
        return candidates

    def split(self, response: str) -> List[str]:
        """Split by the first applicable strategy."""
        for strategy in self.policy.precedence:
            segments = self._apply(strategy, response)
            if segments:
                return segments
        return [response]

    def clean(self, segment: str) -> str:
        """Trim and strip leading bullets or numbering."""
        text = segment.strip()
        previous = None
        while text and text != previous:
            previous = text
            text = self.LEADING_MARKER_PATTERN.sub("", text, count=1).strip()
        return text

    def is_usable(self, candidate: str) -> bool:
        """Length and banned-word filter."""
        if len(candidate) < self.policy.min_suggestion_length:
            return False
        lowered = candidate.lower()
        return not any(word in lowered for word in self.policy.banned_words)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _apply(self, strategy: ParseStrategy, response: str) -> List[str]:
        if strategy == ParseStrategy.NUMBERED:
            return self._split_numbered(response)
        if strategy == ParseStrategy.LINES:
            lines = [line for line in response.splitlines() if line.strip()]
            return lines if len(lines) > 1 else []
        if strategy == ParseStrategy.DELIMITED:
            parts = [p for p in self.DELIMITER_PATTERN.split(response) if p.strip()]
            return parts if len(parts) > 1 else []
        return []

    def _split_numbered(self, response: str) -> List[str]:
        line_markers = len(self.LINE_NUMBER_PATTERN.findall(response))
        inline_markers = len(self.INLINE_NUMBER_PATTERN.findall(response))

        if line_markers >= 2 or (line_markers and inline_markers < 2):
            parts = self.LINE_NUMBER_PATTERN.split(response)[1:]
            return [self._join_item(p) for p in parts if p.strip()]

        if inline_markers >= 2:
            parts = self.INLINE_NUMBER_PATTERN.split(response)[1:]
            return [p for p in parts if p.strip()]

        return []

    def _join_item(self, part: str) -> str:
        # An item runs until the next marker or the first blank line
        paragraph = self.BLANK_LINE_PATTERN.split(part.strip(), maxsplit=1)[0]
        return " ".join(line.strip() for line in paragraph.splitlines() if line.strip())
