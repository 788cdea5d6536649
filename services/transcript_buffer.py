"""
TranscriptBuffer — ordered store of final utterances for one session.

Insertion order is the conversation timeline. The buffer is unbounded;
consumers read a trailing window. Every append advances a sequence number so
each utterance is evaluated for triggers at most once.
"""

from __future__ import annotations

from typing import List, Tuple

from domain.models import Utterance
from shared_utils.error_handler import InvalidUtteranceError


class TranscriptBuffer:
    """Append-only utterance sequence owned by exactly one session."""

    def __init__(self) -> None:
        self._utterances: List[Utterance] = []
        self._sequence = 0
        self._last_evaluated = 0

    def __len__(self) -> int:
        return len(self._utterances)

    @property
    def sequence(self) -> int:
        """Sequence number of the most recent append (0 when empty)."""
        return self._sequence

    def append(self, utterance: Utterance) -> int:
        """Store a final utterance with trimmed text.

        Returns:
            Total number of buffered utterances.

        Raises:
            InvalidUtteranceError: Empty/whitespace text or interim utterance.
        """
        text = utterance.text.strip() if isinstance(utterance.text, str) else ""
        if not text:
            raise InvalidUtteranceError("Utterance text cannot be empty")
        if not utterance.is_final:
            raise InvalidUtteranceError(
                "Interim utterances are not buffered",
                context={"text_len": len(text)},
            )

        stored = utterance if text == utterance.text else utterance.model_copy(update={"text": text})
        self._utterances.append(stored)
        self._sequence += 1
        return len(self._utterances)

    def window(self, n: int) -> Tuple[Utterance, ...]:
        """Last ``min(n, len)`` utterances in original order."""
        if n <= 0:
            return ()
        return tuple(self._utterances[-n:])

    def claim_evaluation(self, sequence: int) -> bool:
        """True the first time *sequence* is claimed, False afterwards."""
        if sequence <= self._last_evaluated or sequence > self._sequence:
            return False
        self._last_evaluated = sequence
        return True

    def clear(self) -> None:
        self._utterances.clear()
