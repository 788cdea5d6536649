"""
OpenAI LLM provider implementation.
"""

from llama_index.core.llms import ChatMessage, MessageRole
from llama_index.llms.openai import OpenAI

from core_intelligence.providers import (
    BRAINSTORM_TOOL_SCHEMA,
    LLMProviderBase,
    function_call_from_tool_calls,
)
from domain.models import GenerationRequest, GenerationResult
from shared_utils.constants import Defaults, LogScope


class OpenAILLMProvider(LLMProviderBase):
    """OpenAI chat provider that also offers the brainstorm tool."""

    def __init__(self, model_id: str, api_key: str, temperature: float = Defaults.LLM_TEMPERATURE):
        super().__init__(name=f"OpenAILLM({model_id})")
        self.model_id = model_id
        self.api_key = api_key
        self.temperature = temperature
        self._llm = None

    def initialize(self) -> None:
        """Initialize OpenAI LLM client."""
        try:
            self._llm = OpenAI(
                model=self.model_id,
                api_key=self.api_key,
                temperature=self.temperature,
            )
            self.logger.info(
                "Initialized OpenAI LLM provider",
                extra={
                    "scope": LogScope.PROVIDER,
                    "model_id": self.model_id
                }
            )
        except Exception as e:
            self.logger.error(
                "Failed to initialize OpenAI LLM provider",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise

    def is_available(self) -> bool:
        """Check if OpenAI LLM is available."""
        return self._llm is not None

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Chat completion; a tool call takes precedence over text."""
        if not self.is_available():
            raise RuntimeError("OpenAI LLM provider not initialized")

        messages = [
            ChatMessage(role=MessageRole.SYSTEM, content=request.system_prompt),
            ChatMessage(role=MessageRole.USER, content=self.build_user_message(request)),
        ]
        try:
            response = await self._llm.achat(messages, tools=[BRAINSTORM_TOOL_SCHEMA])
        except Exception as e:
            self.logger.error(
                "LLM generation failed",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise

        message = response.message
        function_call = function_call_from_tool_calls(
            (message.additional_kwargs or {}).get("tool_calls")
        )
        if function_call is not None:
            return GenerationResult(function_call=function_call)
        return GenerationResult(text=message.content or "")
