"""
SuggestionOrchestrator — turns a trigger into broadcast suggestions.

Per trigger:
    1. Join the session's windowed participant utterances, then the
       triggering text, into a context string.
    2. Skip when the context is too short to carry signal.
    3. Ask the injected generative capability for 3-5 ideas (with timeout).
    4. Parse the response into candidates (or run the brainstorm function
       when the capability answers with a function invocation).
    5. Filter candidates through the session's deduplicator, in order.
    6. Emit at most ``max_suggestions`` via the broadcast channel.

Generation failures and unparsable responses produce zero suggestions for
that trigger and never reach the session or its caller. Results that arrive
after the session stopped being OPEN are discarded.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

from core_intelligence.engine.brainstorm_tool import run_function_call
from core_intelligence.engine.deduplicator import SuggestionDeduplicator
from core_intelligence.parser.suggestion_parser import SuggestionParser
from domain.models import (
    BroadcastEvent,
    EventKind,
    GenerationRequest,
    GenerationResult,
    SpeakerRole,
    Suggestion,
    SuggestionOrigin,
)
from domain.policies import OrchestrationPolicy
from ports.llm_provider import LLMProviderPort
from services.broadcast_channel import BroadcastChannel
from services.session_registry import Session
from shared_utils.constants import LogScope
from shared_utils.error_handler import AppException, GenerationFailure, ParseFailure
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.ORCHESTRATION)

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

BRAINSTORM_SYSTEM_PROMPT = (
    "You are a creative brainstorming assistant. Your role is to listen to "
    "meeting context and generate innovative, practical ideas to help "
    "overcome creative blocks. Focus on:\n"
    "- Creative problem-solving approaches\n"
    "- Alternative perspectives\n"
    "- Combining existing ideas in new ways\n"
    "- Practical next steps\n"
    "Keep responses concise and actionable."
)

BRAINSTORM_PROMPT = (
    "The participants want fresh ideas. Suggest {min_ideas} to {max_ideas} "
    "concrete, actionable ideas that move this discussion forward.\n"
    "Answer with a numbered list, one idea per line, formatted as "
    "'1. <idea>'. No introduction and no closing remarks."
)

MIN_IDEAS = 3
MAX_IDEAS = 5

Candidate = Tuple[str, Optional[float]]


class SuggestionOrchestrator:
    """Composes prompts, calls the capability, filters and emits ideas."""

    def __init__(
        self,
        *,
        llm_provider: LLMProviderPort,
        deduplicator: SuggestionDeduplicator,
        broadcaster: BroadcastChannel,
        parser: Optional[SuggestionParser] = None,
        policy: Optional[OrchestrationPolicy] = None,
    ) -> None:
        self._llm = llm_provider
        self._dedup = deduplicator
        self._broadcaster = broadcaster
        self._parser = parser or SuggestionParser()
        self._policy = policy or OrchestrationPolicy()

    @property
    def assistant_id(self) -> str:
        return getattr(self._llm, "name", type(self._llm).__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request_suggestions(self, session: Session, latest_text: str) -> Optional[asyncio.Task]:
        """Schedule generation for *session*; returns without waiting.

        Must be called from within the running event loop. Returns the task
        (useful to tests and shutdown code) or None when the session no
        longer accepts triggers.
        """
        if not session.is_open:
            logger.info("generation_rejected_session_not_open", session_id=session.session_id)
            return None

        task = asyncio.create_task(
            self.generate_for(session, latest_text),
            name=f"brainstorm-{session.session_id[:8]}",
        )
        session.track(task)
        task.add_done_callback(_log_task_failure)
        return task

    async def generate_for(self, session: Session, latest_text: str) -> List[Suggestion]:
        """Run one generation round and return the suggestions emitted."""
        log = logger.bind(session_id=session.session_id)
        context = self.build_context(session, latest_text)

        if len(context) < self._policy.min_context_length:
            log.info(
                "generation_skipped_short_context",
                context_len=len(context),
                min_context_length=self._policy.min_context_length,
            )
            return []

        try:
            result = await self._generate(context)
            candidates = self._candidates(result)
        except GenerationFailure as exc:
            log.warning("generation_failed", error_code=exc.error_code, error=exc.message)
            return []
        except ParseFailure as exc:
            log.info("generation_unparsable", error=exc.message)
            return []

        return await self.emit_suggestions(session, candidates, transcript=latest_text)

    def build_context(self, session: Session, latest_text: str) -> str:
        """Windowed participant speech, then the triggering text."""
        window = session.transcript.window(self._policy.window_size)
        lines = [u.text for u in window if u.role == SpeakerRole.PARTICIPANT]

        latest = (latest_text or "").strip()
        if latest and (not lines or lines[-1] != latest):
            lines.append(latest)
        return self._policy.context_separator.join(lines)

    async def emit_suggestions(
        self,
        session: Session,
        candidates: Sequence[Candidate],
        *,
        transcript: str,
        origin: SuggestionOrigin = SuggestionOrigin.GENERATED,
        source: Optional[str] = None,
    ) -> List[Suggestion]:
        """Dedup *candidates* in order and broadcast the accepted ones."""
        emitted: List[Suggestion] = []
        async with session.lock:
            if not session.is_open:
                logger.info(
                    "suggestions_discarded_session_not_open",
                    session_id=session.session_id,
                    candidate_count=len(candidates),
                )
                return []

            for text, confidence in candidates:
                if len(emitted) >= self._policy.max_suggestions:
                    break
                if not self._dedup.accept(session, text):
                    continue
                emitted.append(
                    Suggestion(
                        text=text,
                        origin=origin,
                        session_id=session.session_id,
                        confidence=confidence,
                        source=source,
                    )
                )

            session.suggestions.extend(emitted)
            for suggestion in emitted:
                await self._broadcaster.publish(
                    session.session_id,
                    BroadcastEvent(
                        kind=EventKind.BRAINSTORM_OPPORTUNITY,
                        session_id=session.session_id,
                        payload={
                            "suggestion": suggestion.text,
                            "origin": suggestion.origin,
                            "transcript": transcript,
                            "from": suggestion.source,
                            "confidence": suggestion.confidence,
                        },
                    ),
                )

        logger.info(
            "suggestions_emitted",
            session_id=session.session_id,
            origin=origin.value,
            candidate_count=len(candidates),
            emitted_count=len(emitted),
        )
        return emitted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _generate(self, context: str) -> GenerationResult:
        request = GenerationRequest(
            system_prompt=BRAINSTORM_SYSTEM_PROMPT,
            context=context,
            prompt=BRAINSTORM_PROMPT.format(min_ideas=MIN_IDEAS, max_ideas=MAX_IDEAS),
        )
        timeout = self._policy.generation_timeout
        try:
            result = await asyncio.wait_for(self._llm.generate(request), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationFailure(f"Generation timed out after {timeout}s") from exc
        except Exception as exc:
            raise GenerationFailure(str(exc) or type(exc).__name__) from exc

        if not isinstance(result, GenerationResult):
            raise GenerationFailure(
                "Malformed generation result",
                context={"result_type": type(result).__name__},
            )
        return result

    def _candidates(self, result: GenerationResult) -> List[Candidate]:
        if result.is_function_call:
            try:
                idea = run_function_call(result.function_call)
            except AppException as exc:
                raise GenerationFailure(exc.message, context=exc.context) from exc
            text = self._parser.clean(idea.idea)
            if not self._parser.is_usable(text):
                raise ParseFailure("Function result is not a usable suggestion")
            return [(text, idea.confidence)]

        return [(text, None) for text in self._parser.parse(result.text)]


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "generation_task_crashed",
            task=task.get_name(),
            error_type=type(exc).__name__,
            error=str(exc),
        )
