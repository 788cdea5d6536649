"""
Root conftest.py — shared fixtures for the entire test suite.

Guidelines:
    • No __init__.py in test sub-directories (avoids shadowing root packages).
    • pytest.ini_options lives in pyproject.toml with pythonpath=["."].
    • Markers: integration.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from core_intelligence.engine.deduplicator import SuggestionDeduplicator
from core_intelligence.engine.trigger_detector import TriggerDetector
from core_intelligence.parser.suggestion_parser import SuggestionParser
from domain.models import (
    BroadcastEvent,
    EventKind,
    GenerationRequest,
    GenerationResult,
    SpeakerRole,
    Utterance,
)
from domain.policies import DedupPolicy, OrchestrationPolicy
from services.broadcast_channel import BroadcastChannel
from services.conversation_pipeline import ConversationPipeline
from services.session_registry import Session, SessionRegistry
from services.suggestion_orchestrator import SuggestionOrchestrator


# ---------------------------------------------------------------------------
# Marker registration
# ---------------------------------------------------------------------------

def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ---------------------------------------------------------------------------
# Minimal settings kwargs for Settings(**BASE_SETTINGS_KWARGS)
# ---------------------------------------------------------------------------

BASE_SETTINGS_KWARGS: Dict[str, str] = {
    "llm_provider": "bedrock",
    "bedrock_region": "eu-west-2",
    "bedrock_llm_model_id": "anthropic.claude-3-haiku-20240307-v1:0",
    "environment": "development",
}


@pytest.fixture()
def base_settings_kwargs() -> Dict[str, str]:
    """Provide the minimal kwargs needed to instantiate ``Settings``."""
    return {**BASE_SETTINGS_KWARGS}


# ---------------------------------------------------------------------------
# Sample generations
# ---------------------------------------------------------------------------

PRICING_RESPONSE = "1. Try tiered pricing\n2. Try tiered pricing\n3. Ask customers directly"


@pytest.fixture()
def pricing_response() -> str:
    return PRICING_RESPONSE


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class RecordingSubscriber:
    """Async subscriber that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: List[BroadcastEvent] = []

    async def __call__(self, event: BroadcastEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[EventKind]:
        return [e.kind for e in self.events]

    def suggestions(self) -> List[str]:
        return [
            e.payload["suggestion"]
            for e in self.events
            if e.kind == EventKind.BRAINSTORM_OPPORTUNITY
        ]


class FakeLLM:
    """Generative capability double.

    Returns *result* (text or GenerationResult) for every request. When
    *gate* is set the call suspends until the event is set, which lets tests
    act while a generation is outstanding.
    """

    name = "fake-llm"

    def __init__(
        self,
        result: Any = PRICING_RESPONSE,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.result = result
        self.error = error
        self.gate = gate
        self.requests: List[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if isinstance(self.result, GenerationResult):
            return self.result
        return GenerationResult(text=self.result)


@pytest.fixture()
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture()
def recorder_factory() -> Callable[[], RecordingSubscriber]:
    return RecordingSubscriber


@pytest.fixture()
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture()
def fake_llm_factory() -> Callable[..., FakeLLM]:
    return FakeLLM


def make_utterance(text: str, role: SpeakerRole = SpeakerRole.PARTICIPANT, **kwargs) -> Utterance:
    return Utterance(role=role, text=text, **kwargs)


@pytest.fixture()
def utterance_factory() -> Callable[..., Utterance]:
    return make_utterance


async def _drain(session: Session) -> None:
    while session._pending:
        await asyncio.gather(*list(session._pending), return_exceptions=True)


@pytest.fixture()
def drain() -> Callable[[Session], Any]:
    """Await every in-flight generation task of a session."""
    return _drain


# ---------------------------------------------------------------------------
# Wired services
# ---------------------------------------------------------------------------

@pytest.fixture()
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture()
def broadcaster() -> BroadcastChannel:
    return BroadcastChannel()


@pytest.fixture()
def deduplicator() -> SuggestionDeduplicator:
    return SuggestionDeduplicator(DedupPolicy(prefix_overlap=15))


@pytest.fixture()
def orchestrator(fake_llm, deduplicator, broadcaster) -> SuggestionOrchestrator:
    return SuggestionOrchestrator(
        llm_provider=fake_llm,
        deduplicator=deduplicator,
        broadcaster=broadcaster,
        parser=SuggestionParser(),
        policy=OrchestrationPolicy(generation_timeout=1.0),
    )


@pytest.fixture()
def pipeline(registry, broadcaster, deduplicator, orchestrator) -> ConversationPipeline:
    return ConversationPipeline(
        registry=registry,
        broadcaster=broadcaster,
        detector=TriggerDetector(),
        deduplicator=deduplicator,
        orchestrator=orchestrator,
    )
