"""
Trigger detection: does an utterance ask for brainstorming help?

Matching is a lower-cased substring test against the policy's phrase set so
that transcription noise ("brainstorming", "stuckk") still matches. Fragments
shorter than the policy minimum are never evaluated.
"""

from __future__ import annotations

from typing import Any, Optional

from domain.models import TriggerDecision
from domain.policies import TriggerPolicy
from shared_utils.constants import LogScope
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.TRIGGER)

REASON_PHRASE_MATCH = "phrase_match"


def detect_trigger(text: Any, policy: Optional[TriggerPolicy] = None) -> TriggerDecision:
    """Classify *text*; never raises."""
    policy = policy or TriggerPolicy()

    if not isinstance(text, str):
        return TriggerDecision.no_trigger()

    stripped = text.strip()
    if len(stripped) < policy.min_length:
        return TriggerDecision.no_trigger()

    lowered = stripped.lower()
    for phrase in policy.phrases:
        if phrase in lowered:
            return TriggerDecision(triggered=True, reason=REASON_PHRASE_MATCH, phrase=phrase)

    return TriggerDecision.no_trigger()


class TriggerDetector:
    """Holds a TriggerPolicy and logs positive decisions."""

    def __init__(self, policy: Optional[TriggerPolicy] = None) -> None:
        self.policy = policy or TriggerPolicy()

    def evaluate(self, text: Any) -> TriggerDecision:
        decision = detect_trigger(text, self.policy)
        if decision.triggered:
            logger.info("brainstorm_trigger_detected", phrase=decision.phrase)
        return decision
