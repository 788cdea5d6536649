"""
Factory for creating configured provider instances.
Handles provider instantiation with dependency injection.
"""

from typing import Optional
import logging

from core_intelligence.providers import LLMProviderBase
from core_intelligence.providers.bedrock_llm import BedrockLLMProvider
from core_intelligence.providers.openai_llm import OpenAILLMProvider
from shared_utils.config_loader import get_settings
from shared_utils.constants import LLMProvider, LogScope
from shared_utils.error_handler import ConfigurationError
from shared_utils.logging_utils import log_execution


logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """Factory for creating LLM providers."""

    @staticmethod
    @log_execution(scope=LogScope.PROVIDER)
    def create(provider_type: Optional[str] = None) -> LLMProviderBase:
        """Create configured LLM provider.

        Args:
            provider_type: Optional override. If None, uses config value.

        Returns:
            Initialized LLM provider.

        Raises:
            ConfigurationError: If the provider is unknown or misconfigured.
        """
        settings = get_settings()
        llm_provider = (provider_type or settings.llm_provider).lower()

        logger.info(
            "Creating LLM provider",
            extra={"scope": LogScope.PROVIDER, "provider": llm_provider}
        )

        if llm_provider == LLMProvider.OPENAI.value:
            if not settings.openai_api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY not configured",
                    context={"provider": llm_provider},
                )
            provider: LLMProviderBase = OpenAILLMProvider(
                model_id=settings.openai_llm_model_id,
                api_key=settings.openai_api_key,
                temperature=settings.llm_temperature,
            )

        elif llm_provider == LLMProvider.BEDROCK.value:
            if not settings.bedrock_region or not settings.bedrock_llm_model_id:
                raise ConfigurationError(
                    "BEDROCK_REGION or BEDROCK_LLM_MODEL_ID not configured",
                    context={"provider": llm_provider},
                )
            provider = BedrockLLMProvider(
                model_id=settings.bedrock_llm_model_id,
                region=settings.bedrock_region,
                temperature=settings.llm_temperature,
            )

        else:
            raise ConfigurationError(
                f"Unknown LLM provider: {llm_provider}",
                context={"provider": llm_provider},
            )

        try:
            provider.initialize()
        except Exception as e:
            logger.error(
                "Failed to create LLM provider",
                extra={"scope": LogScope.PROVIDER, "provider": llm_provider, "error": str(e)}
            )
            raise ConfigurationError(
                f"LLM provider initialization failed: {e}",
                context={"provider": llm_provider},
            ) from e
        return provider
