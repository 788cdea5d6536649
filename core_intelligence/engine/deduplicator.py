"""
Per-session suggestion deduplication.

Two texts are the same idea when their dedup keys are equal, or when one key
contains the leading ``prefix_overlap`` characters of the other. The second
rule absorbs near-identical phrasings produced by partial re-generation.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable, List, Optional

from domain.policies import DedupPolicy
from shared_utils.constants import LogScope
from shared_utils.logging_utils import ContextualLogger

if TYPE_CHECKING:
    from services.session_registry import Session


logger = ContextualLogger(scope=LogScope.DEDUP)

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Dedup key: case-folded, trimmed, inner whitespace collapsed."""
    return _WHITESPACE.sub(" ", text.casefold().strip())


def is_duplicate(key: str, existing: Iterable[str], prefix_overlap: int) -> bool:
    """Check *key* against previously accepted keys."""
    for other in existing:
        if key == other:
            return True
        if len(other) >= prefix_overlap and other[:prefix_overlap] in key:
            return True
        if len(key) >= prefix_overlap and key[:prefix_overlap] in other:
            return True
    return False


class SuggestionDeduplicator:
    """Filters candidates against a session's deduplication set.

    The set lives on the session (``session.dedup_keys``); this class only
    holds the policy, so one instance serves every session.
    """

    def __init__(self, policy: Optional[DedupPolicy] = None) -> None:
        self.policy = policy or DedupPolicy()

    def accept(self, session: "Session", candidate_text: str) -> bool:
        """Record *candidate_text* unless it duplicates an earlier idea.

        Returns:
            True when the candidate is new and has been inserted.
        """
        key = normalize(candidate_text)
        if not key:
            return False

        if is_duplicate(key, session.dedup_keys, self.policy.prefix_overlap):
            logger.debug("suggestion_duplicate", session_id=session.session_id, key=key)
            return False

        session.dedup_keys.append(key)
        return True

    def accept_batch(self, session: "Session", candidates: Iterable[str]) -> List[str]:
        """Accept candidates in order; later ones see earlier insertions."""
        return [c for c in candidates if self.accept(session, c)]

    def reset(self, session: "Session") -> None:
        """Forget every idea accepted for *session*."""
        cleared = len(session.dedup_keys)
        session.dedup_keys.clear()
        logger.info("dedup_set_reset", session_id=session.session_id, cleared=cleared)
