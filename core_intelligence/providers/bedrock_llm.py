"""
Bedrock LLM provider implementation.
"""

import asyncio

from llama_index.core.llms import ChatMessage, MessageRole
from llama_index.llms.bedrock import Bedrock

from core_intelligence.providers import LLMProviderBase
from domain.models import GenerationRequest, GenerationResult
from shared_utils.constants import Defaults, LogScope


class BedrockLLMProvider(LLMProviderBase):
    """AWS Bedrock LLM provider (text responses only)."""

    def __init__(self, model_id: str, region: str, temperature: float = Defaults.LLM_TEMPERATURE):
        super().__init__(name=f"BedrockLLM({model_id})")
        self.model_id = model_id
        self.region = region
        self.temperature = temperature
        self._llm = None

    def initialize(self) -> None:
        """Initialize Bedrock LLM client."""
        try:
            self._llm = Bedrock(
                model=self.model_id,
                region_name=self.region,
                temperature=self.temperature,
            )
            self.logger.info(
                "Initialized Bedrock LLM provider",
                extra={
                    "scope": LogScope.PROVIDER,
                    "model_id": self.model_id,
                    "region": self.region
                }
            )
        except Exception as e:
            self.logger.error(
                "Failed to initialize Bedrock LLM provider",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise

    def is_available(self) -> bool:
        """Check if Bedrock LLM is available."""
        return self._llm is not None

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Run the blocking Bedrock chat call on a worker thread."""
        if not self.is_available():
            raise RuntimeError("Bedrock LLM provider not initialized")

        messages = [
            ChatMessage(role=MessageRole.SYSTEM, content=request.system_prompt),
            ChatMessage(role=MessageRole.USER, content=self.build_user_message(request)),
        ]
        try:
            response = await asyncio.to_thread(self._llm.chat, messages)
        except Exception as e:
            self.logger.error(
                "LLM generation failed",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise

        return GenerationResult(text=response.message.content or "")
