"""
End-to-end tests for services.conversation_pipeline.

utterance → buffer → trigger → background generation → dedup → broadcast,
exercised through the public pipeline API with a FakeLLM.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core_intelligence.engine.deduplicator import SuggestionDeduplicator
from core_intelligence.engine.trigger_detector import TriggerDetector
from domain.models import EventKind, SessionState, SpeakerRole, SuggestionOrigin, Utterance
from domain.policies import DedupPolicy, OrchestrationPolicy
from services.conversation_pipeline import REASON_EXPLICIT_REQUEST, ConversationPipeline
from services.suggestion_orchestrator import SuggestionOrchestrator
from shared_utils.error_handler import DuplicateSessionError, SessionNotFoundError


pytestmark = pytest.mark.asyncio

STUCK = "We are totally stuck on pricing"


async def _join(pipeline, broadcaster, subscriber, session_id: str = "s-1"):
    broadcaster.subscribe(session_id, subscriber)
    return await pipeline.join(session_id)


def _pipeline_with(llm, registry, broadcaster) -> ConversationPipeline:
    dedup = SuggestionDeduplicator(DedupPolicy(prefix_overlap=15))
    return ConversationPipeline(
        registry=registry,
        broadcaster=broadcaster,
        detector=TriggerDetector(),
        deduplicator=dedup,
        orchestrator=SuggestionOrchestrator(
            llm_provider=llm,
            deduplicator=dedup,
            broadcaster=broadcaster,
            policy=OrchestrationPolicy(generation_timeout=1.0),
        ),
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_join_announces_session(self, pipeline, broadcaster, recorder) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        assert session.is_open
        assert recorder.kinds() == [EventKind.SESSION_JOINED]
        assert recorder.events[0].payload["sessionId"] == "s-1"

    async def test_join_twice(self, pipeline, broadcaster, recorder) -> None:
        await _join(pipeline, broadcaster, recorder)
        with pytest.raises(DuplicateSessionError):
            await pipeline.join("s-1")

    async def test_bind_meeting(self, pipeline, broadcaster, recorder) -> None:
        await _join(pipeline, broadcaster, recorder)
        session = await pipeline.bind_meeting("s-1", "m-42")
        assert session.meeting_id == "m-42"

    async def test_leave(self, pipeline, registry, broadcaster, recorder) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        await pipeline.leave("s-1")
        assert recorder.kinds()[-1] == EventKind.SESSION_LEFT
        assert "s-1" not in registry
        assert session.state == SessionState.CLOSED
        assert broadcaster.subscriber_count("s-1") == 0

    async def test_leave_closes_when_delivery_raises(
        self, pipeline, registry, broadcaster, recorder, monkeypatch
    ) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        monkeypatch.setattr(broadcaster, "publish", AsyncMock(side_effect=RuntimeError("socket gone")))

        with pytest.raises(RuntimeError):
            await pipeline.leave("s-1")

        assert "s-1" not in registry
        assert session.state == SessionState.CLOSED
        assert broadcaster.subscriber_count("s-1") == 0

    async def test_leave_with_failing_subscriber(self, pipeline, registry, broadcaster, recorder) -> None:
        await _join(pipeline, broadcaster, recorder)
        broadcaster.subscribe("s-1", AsyncMock(side_effect=ConnectionError("closed")))

        await pipeline.leave("s-1")

        assert recorder.kinds()[-1] == EventKind.SESSION_LEFT
        assert len(registry) == 0

    async def test_leave_unknown_is_noop(self, pipeline) -> None:
        await pipeline.leave("never-joined")


# ---------------------------------------------------------------------------
# Utterances and triggers
# ---------------------------------------------------------------------------


class TestHandleUtterance:
    async def test_pricing_scenario(self, pipeline, broadcaster, recorder, drain) -> None:
        session = await _join(pipeline, broadcaster, recorder)

        decision = await pipeline.handle_utterance("s-1", Utterance(text=STUCK))
        assert decision.triggered is True
        assert decision.phrase == "stuck"

        await drain(session)
        assert recorder.suggestions() == ["Try tiered pricing", "Ask customers directly"]
        assert recorder.kinds() == [
            EventKind.SESSION_JOINED,
            EventKind.UTTERANCE,
            EventKind.BRAINSTORM_OPPORTUNITY,
            EventKind.BRAINSTORM_OPPORTUNITY,
        ]

    async def test_utterance_event_payload(self, pipeline, broadcaster, recorder) -> None:
        await _join(pipeline, broadcaster, recorder)
        await pipeline.handle_utterance("s-1", Utterance(text="  hello team  ", speaker="Alice"))
        event = recorder.events[-1]
        assert event.kind == EventKind.UTTERANCE
        assert event.payload["text"] == "hello team"
        assert event.payload["speaker"] == "Alice"
        assert event.payload["role"] == SpeakerRole.PARTICIPANT

    async def test_no_trigger(self, pipeline, broadcaster, recorder, fake_llm) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        decision = await pipeline.handle_utterance("s-1", Utterance(text="The numbers look fine"))
        assert decision.triggered is False
        assert session.pending_count == 0
        assert fake_llm.requests == []

    async def test_empty_utterance_dropped(self, pipeline, broadcaster, recorder) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        assert await pipeline.handle_utterance("s-1", Utterance(text="   ")) is None
        assert len(session.transcript) == 0
        assert recorder.kinds() == [EventKind.SESSION_JOINED]

    async def test_interim_utterance_dropped(self, pipeline, broadcaster, recorder) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        assert await pipeline.handle_utterance("s-1", Utterance(text=STUCK, is_final=False)) is None
        assert len(session.transcript) == 0
        assert session.pending_count == 0

    async def test_assistant_speech_never_triggers(self, pipeline, broadcaster, recorder) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        result = await pipeline.handle_utterance(
            "s-1", Utterance(text="Here is an idea to get unstuck", role=SpeakerRole.ASSISTANT)
        )
        assert result is None
        assert len(session.transcript) == 1
        assert session.pending_count == 0

    async def test_unknown_session(self, pipeline) -> None:
        with pytest.raises(SessionNotFoundError):
            await pipeline.handle_utterance("missing", Utterance(text=STUCK))

    async def test_buffering_continues_during_generation(
        self, fake_llm_factory, registry, broadcaster, recorder, drain
    ) -> None:
        gate = asyncio.Event()
        pipeline = _pipeline_with(fake_llm_factory(gate=gate), registry, broadcaster)
        session = await _join(pipeline, broadcaster, recorder)

        await pipeline.handle_utterance("s-1", Utterance(text=STUCK))
        await pipeline.handle_utterance("s-1", Utterance(text="Meanwhile, the demo went well"))
        assert len(session.transcript) == 2
        assert session.pending_count == 1

        gate.set()
        await drain(session)
        assert recorder.suggestions() == ["Try tiered pricing", "Ask customers directly"]


# ---------------------------------------------------------------------------
# Close during generation and isolation
# ---------------------------------------------------------------------------


class TestConcurrency:
    async def test_close_during_generation_emits_nothing(
        self, fake_llm_factory, registry, broadcaster, recorder, drain
    ) -> None:
        gate = asyncio.Event()
        pipeline = _pipeline_with(fake_llm_factory(gate=gate), registry, broadcaster)
        session = await _join(pipeline, broadcaster, recorder)
        await pipeline.handle_utterance("s-1", Utterance(text=STUCK))

        await pipeline.leave("s-1")
        assert session.state == SessionState.CLOSING
        events_at_close = len(recorder.events)

        gate.set()
        await drain(session)

        assert len(recorder.events) == events_at_close
        assert recorder.suggestions() == []
        assert session.state == SessionState.CLOSED
        with pytest.raises(SessionNotFoundError):
            await pipeline.handle_utterance("s-1", Utterance(text=STUCK))

    async def test_two_sessions_isolated(self, pipeline, broadcaster, recorder_factory, drain) -> None:
        a_events, b_events = recorder_factory(), recorder_factory()
        a = await _join(pipeline, broadcaster, a_events, "s-a")
        b = await _join(pipeline, broadcaster, b_events, "s-b")

        await asyncio.gather(
            pipeline.handle_utterance("s-a", Utterance(text=STUCK)),
            pipeline.handle_utterance("s-b", Utterance(text="Any thoughts on the onboarding flow?")),
        )
        await asyncio.gather(drain(a), drain(b))

        assert [u.text for u in a.transcript.window(10)] == [STUCK]
        assert [u.text for u in b.transcript.window(10)] == ["Any thoughts on the onboarding flow?"]
        assert a.dedup_keys == ["try tiered pricing", "ask customers directly"]
        assert b.dedup_keys == ["try tiered pricing", "ask customers directly"]
        assert a.dedup_keys is not b.dedup_keys
        assert all(e.session_id == "s-a" for e in a_events.events)
        assert all(e.session_id == "s-b" for e in b_events.events)
        assert len(a_events.suggestions()) == 2
        assert len(b_events.suggestions()) == 2


# ---------------------------------------------------------------------------
# Explicit requests and relayed ideas
# ---------------------------------------------------------------------------


class TestRequestBrainstorm:
    async def test_new_run_resets_dedup(self, pipeline, broadcaster, recorder, drain) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        await pipeline.handle_utterance("s-1", Utterance(text=STUCK))
        await drain(session)

        decision = await pipeline.request_brainstorm("s-1")
        assert decision.triggered is True
        assert decision.reason == REASON_EXPLICIT_REQUEST
        await drain(session)

        ready = [e for e in recorder.events if e.kind == EventKind.SUGGESTION_READY]
        assert ready[0].payload == {"assistantId": "fake-llm"}
        assert recorder.suggestions() == [
            "Try tiered pricing",
            "Ask customers directly",
            "Try tiered pricing",
            "Ask customers directly",
        ]

    async def test_uses_supplied_context(self, pipeline, broadcaster, recorder, fake_llm, drain) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        await pipeline.request_brainstorm("s-1", "Ideas for the launch event please")
        await drain(session)
        assert fake_llm.requests[0].context == "Ideas for the launch event please"


class TestRelayPeerSuggestion:
    async def test_relayed_and_deduplicated(self, pipeline, broadcaster, recorder, drain) -> None:
        session = await _join(pipeline, broadcaster, recorder)
        await pipeline.handle_utterance("s-1", Utterance(text=STUCK))
        await drain(session)

        assert await pipeline.relay_peer_suggestion("s-1", "try tiered PRICING", source="peer") is None

        relayed = await pipeline.relay_peer_suggestion("s-1", "Partner with a reseller", source="peer")
        assert relayed.origin == SuggestionOrigin.RELAYED
        assert relayed.source == "peer"
        assert recorder.events[-1].payload["from"] == "peer"

    async def test_empty_idea_ignored(self, pipeline, broadcaster, recorder) -> None:
        await _join(pipeline, broadcaster, recorder)
        assert await pipeline.relay_peer_suggestion("s-1", "   ") is None
        assert recorder.kinds() == [EventKind.SESSION_JOINED]


class TestBroadcastTranscript:
    async def test_reaches_every_open_session(self, pipeline, registry, broadcaster, recorder_factory) -> None:
        a, b = recorder_factory(), recorder_factory()
        await _join(pipeline, broadcaster, a, "s-1")
        await _join(pipeline, broadcaster, b, "s-2")

        reached = await pipeline.broadcast_transcript(
            Utterance(role=SpeakerRole.ASSISTANT, text="  Have you tried annual plans?  ")
        )

        assert reached == 2
        for recorder in (a, b):
            assert recorder.kinds() == [EventKind.SESSION_JOINED, EventKind.UTTERANCE]
            assert recorder.events[-1].payload["text"] == "Have you tried annual plans?"
        assert len(registry.get("s-1").transcript) == 0

    async def test_never_triggers(self, pipeline, broadcaster, recorder, fake_llm) -> None:
        await _join(pipeline, broadcaster, recorder)
        await pipeline.broadcast_transcript(Utterance(text=STUCK))
        await asyncio.sleep(0)
        assert fake_llm.requests == []

    async def test_interim_and_empty_skipped(self, pipeline, broadcaster, recorder) -> None:
        await _join(pipeline, broadcaster, recorder)
        assert await pipeline.broadcast_transcript(Utterance(text="half a sen", is_final=False)) == 0
        assert await pipeline.broadcast_transcript(Utterance(text="   ")) == 0
        assert recorder.kinds() == [EventKind.SESSION_JOINED]

    async def test_no_sessions(self, pipeline) -> None:
        assert await pipeline.broadcast_transcript(Utterance(text="hello everyone")) == 0
