"""
ConversationPipeline — the inbound side of the brainstorming flow.

    utterance → registry (resolve) → transcript buffer (append)
              → broadcast (utterance event) → trigger detector
              → [triggered] orchestrator (background) → dedup → broadcast

Also handles the lifecycle events of a connection, explicit brainstorm
requests (a new assistant run), ideas relayed from peers through the
meeting host and assistant transcripts that name no session.
"""

from __future__ import annotations

from typing import Optional

from core_intelligence.engine.deduplicator import SuggestionDeduplicator
from core_intelligence.engine.trigger_detector import TriggerDetector
from domain.models import (
    BroadcastEvent,
    EventKind,
    SpeakerRole,
    Suggestion,
    SuggestionOrigin,
    TriggerDecision,
    Utterance,
)
from services.broadcast_channel import BroadcastChannel
from services.session_registry import Session, SessionRegistry
from services.suggestion_orchestrator import SuggestionOrchestrator
from shared_utils.constants import LogScope
from shared_utils.error_handler import InvalidUtteranceError, SessionNotFoundError
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.PIPELINE)

REASON_EXPLICIT_REQUEST = "explicit_request"


class ConversationPipeline:
    """Routes transport events through the per-session components."""

    def __init__(
        self,
        *,
        registry: SessionRegistry,
        broadcaster: BroadcastChannel,
        detector: TriggerDetector,
        deduplicator: SuggestionDeduplicator,
        orchestrator: SuggestionOrchestrator,
    ) -> None:
        self.registry = registry
        self.broadcaster = broadcaster
        self._detector = detector
        self._dedup = deduplicator
        self._orchestrator = orchestrator

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def join(self, session_id: str, meeting_id: Optional[str] = None) -> Session:
        """Open a session for a new connection and announce it."""
        session = self.registry.open(session_id, meeting_id=meeting_id)
        await self._publish(session, EventKind.SESSION_JOINED, {
            "sessionId": session.session_id,
            "meetingId": session.meeting_id,
        })
        return session

    async def bind_meeting(self, session_id: str, meeting_id: str) -> Session:
        return self.registry.bind_meeting(session_id, meeting_id)

    async def leave(self, session_id: str) -> None:
        """Announce departure, close the session and drop its subscribers."""
        try:
            if session_id in self.registry:
                session = self.registry.get(session_id)
                await self._publish(session, EventKind.SESSION_LEFT, {"sessionId": session_id})
        finally:
            self.registry.close(session_id)
            self.broadcaster.drop(session_id)

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def handle_utterance(self, session_id: str, utterance: Utterance) -> Optional[TriggerDecision]:
        """Buffer a final utterance and evaluate it for a trigger.

        Returns:
            The trigger decision, or None when the utterance was not buffered
            (interim, empty) or not evaluated (assistant speech).

        Raises:
            SessionNotFoundError: Unknown session, or one that is closing.
        """
        session = self._open_session(session_id)

        async with session.lock:
            if not session.is_open:
                raise SessionNotFoundError(session_id, context={"state": session.state.value})
            try:
                session.transcript.append(utterance)
            except InvalidUtteranceError as exc:
                logger.info("utterance_rejected", session_id=session_id, reason=exc.message)
                return None

            sequence = session.transcript.sequence
            stored = session.transcript.window(1)[0]
            await self._publish(session, EventKind.UTTERANCE, self._utterance_payload(stored))

            # Only participant speech is evaluated for triggers
            if stored.role != SpeakerRole.PARTICIPANT:
                return None
            if not session.transcript.claim_evaluation(sequence):
                return None
            decision = self._detector.evaluate(stored.text)

        if decision.triggered:
            logger.info(
                "suggestions_requested",
                session_id=session_id,
                reason=decision.reason,
                phrase=decision.phrase,
            )
            self._orchestrator.request_suggestions(session, stored.text)
        return decision

    async def broadcast_transcript(self, utterance: Utterance) -> int:
        """Show an assistant transcript that names no session to every open session.

        The utterance is announced but not buffered, so it never reaches
        trigger evaluation. Interim transcripts are dropped.

        Returns:
            Number of sessions the utterance was published to.
        """
        text = utterance.text.strip() if isinstance(utterance.text, str) else ""
        if not text or not utterance.is_final:
            logger.debug("transcript_fan_out_skipped", is_final=utterance.is_final)
            return 0

        stored = utterance.model_copy(update={"text": text})
        reached = 0
        for session_id in self.registry.session_ids():
            session = self.registry.get(session_id)
            if not session.is_open:
                continue
            await self._publish(session, EventKind.UTTERANCE, self._utterance_payload(stored))
            reached += 1

        logger.info("transcript_fanned_out", session_count=reached)
        return reached

    async def request_brainstorm(self, session_id: str, context: Optional[str] = None) -> TriggerDecision:
        """Start a new assistant run on explicit request.

        Resets the session's dedup set, announces the assistant, then asks
        for ideas about *context* or, failing that, the latest participant
        utterance.
        """
        session = self._open_session(session_id)

        async with session.lock:
            self._dedup.reset(session)
            await self._publish(session, EventKind.SUGGESTION_READY, {
                "assistantId": self._orchestrator.assistant_id,
            })
            text = (context or "").strip() or self._latest_participant_text(session)

        self._orchestrator.request_suggestions(session, text)
        return TriggerDecision(triggered=True, reason=REASON_EXPLICIT_REQUEST)

    async def relay_peer_suggestion(
        self,
        session_id: str,
        idea: str,
        source: Optional[str] = None,
    ) -> Optional[Suggestion]:
        """Surface an idea forwarded by another participant's app instance.

        Returns:
            The emitted suggestion, or None when it duplicates an earlier one.
        """
        session = self._open_session(session_id)
        text = (idea or "").strip()
        if not text:
            logger.info("peer_suggestion_rejected", session_id=session_id, reason="empty")
            return None

        emitted = await self._orchestrator.emit_suggestions(
            session,
            [(text, None)],
            transcript="",
            origin=SuggestionOrigin.RELAYED,
            source=source,
        )
        return emitted[0] if emitted else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self, session_id: str) -> Session:
        session = self.registry.get(session_id)
        if not session.is_open:
            raise SessionNotFoundError(session_id, context={"state": session.state.value})
        return session

    @staticmethod
    def _latest_participant_text(session: Session) -> str:
        for utterance in reversed(session.transcript.window(len(session.transcript))):
            if utterance.role == SpeakerRole.PARTICIPANT:
                return utterance.text
        return ""

    @staticmethod
    def _utterance_payload(utterance: Utterance) -> dict:
        return {
            "role": utterance.role,
            "text": utterance.text,
            "timestamp": utterance.timestamp,
            "speaker": utterance.speaker,
        }

    async def _publish(self, session: Session, kind: EventKind, payload: dict) -> None:
        await self.broadcaster.publish(
            session.session_id,
            BroadcastEvent(kind=kind, session_id=session.session_id, payload=payload),
        )
