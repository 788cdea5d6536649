"""
Dependency injection container for managing application dependencies.
Centralizes provider creation and lifecycle management.

The generative provider is created once and handed to the orchestrator;
nothing else reaches it through module globals.
"""

from typing import Optional
import logging

from core_intelligence.engine.deduplicator import SuggestionDeduplicator
from core_intelligence.engine.trigger_detector import TriggerDetector
from core_intelligence.parser.suggestion_parser import SuggestionParser
from core_intelligence.providers import LLMProviderBase
from core_intelligence.providers.factory import LLMProviderFactory
from services.broadcast_channel import BroadcastChannel
from services.conversation_pipeline import ConversationPipeline
from services.session_registry import SessionRegistry
from services.suggestion_orchestrator import SuggestionOrchestrator
from shared_utils.config_loader import get_settings
from shared_utils.constants import LogScope


logger = logging.getLogger(__name__)


class DIContainer:
    """Singleton dependency injection container."""

    _instance: Optional['DIContainer'] = None
    _llm_provider: Optional[LLMProviderBase] = None
    _session_registry: Optional[SessionRegistry] = None
    _broadcast_channel: Optional[BroadcastChannel] = None
    _deduplicator: Optional[SuggestionDeduplicator] = None
    _orchestrator: Optional[SuggestionOrchestrator] = None
    _pipeline: Optional[ConversationPipeline] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def reset(self):
        """Reset container (useful for testing)."""
        self._llm_provider = None
        self._session_registry = None
        self._broadcast_channel = None
        self._deduplicator = None
        self._orchestrator = None
        self._pipeline = None

    def get_llm_provider(self) -> LLMProviderBase:
        """Get or create LLM provider (lazy singleton).

        Returns:
            Initialized LLM provider.

        Raises:
            RuntimeError: If provider initialization fails.
        """
        if self._llm_provider is None:
            logger.info(
                "Initializing LLM provider",
                extra={"scope": LogScope.CONFIG}
            )
            try:
                self._llm_provider = LLMProviderFactory.create()
            except Exception as e:
                logger.error(
                    "Failed to initialize LLM provider",
                    extra={"scope": LogScope.CONFIG, "error": str(e)}
                )
                raise RuntimeError(f"LLM provider initialization failed: {e}") from e

        return self._llm_provider

    def get_session_registry(self) -> SessionRegistry:
        """Get or create the process-wide SessionRegistry."""
        if self._session_registry is None:
            self._session_registry = SessionRegistry()
            logger.info("Initialized SessionRegistry")
        return self._session_registry

    def get_broadcast_channel(self) -> BroadcastChannel:
        """Get or create the BroadcastChannel."""
        if self._broadcast_channel is None:
            self._broadcast_channel = BroadcastChannel()
            logger.info("Initialized BroadcastChannel")
        return self._broadcast_channel

    def get_deduplicator(self) -> SuggestionDeduplicator:
        """Get or create the SuggestionDeduplicator."""
        if self._deduplicator is None:
            self._deduplicator = SuggestionDeduplicator(get_settings().dedup_policy())
            logger.info("Initialized SuggestionDeduplicator")
        return self._deduplicator

    def get_orchestrator(self) -> SuggestionOrchestrator:
        """Get or create the SuggestionOrchestrator."""
        if self._orchestrator is None:
            settings = get_settings()
            self._orchestrator = SuggestionOrchestrator(
                llm_provider=self.get_llm_provider(),
                deduplicator=self.get_deduplicator(),
                broadcaster=self.get_broadcast_channel(),
                parser=SuggestionParser(settings.parse_policy()),
                policy=settings.orchestration_policy(),
            )
            logger.info("Initialized SuggestionOrchestrator")
        return self._orchestrator

    def get_conversation_pipeline(self) -> ConversationPipeline:
        """Get or create the ConversationPipeline."""
        if self._pipeline is None:
            self._pipeline = ConversationPipeline(
                registry=self.get_session_registry(),
                broadcaster=self.get_broadcast_channel(),
                detector=TriggerDetector(get_settings().trigger_policy()),
                deduplicator=self.get_deduplicator(),
                orchestrator=self.get_orchestrator(),
            )
            logger.info("Initialized ConversationPipeline")
        return self._pipeline


# Global singleton instance
_container = DIContainer()


def get_di_container() -> DIContainer:
    """Get global DI container instance."""
    return _container
