"""
Port interface for the generative capability.

core_intelligence/providers/ implements it for OpenAI and Bedrock. The
orchestrator depends only on this contract and receives an instance by
injection.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.models import GenerationRequest, GenerationResult


@runtime_checkable
class LLMProviderPort(Protocol):
    """Abstract interface for brainstorm generation."""

    name: str

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Run one generation.

        Args:
            request: System prompt, prior conversation context and prompt text.

        Returns:
            GenerationResult holding free text or a function invocation.

        Raises:
            Exception: Any provider failure; callers contain it.
        """
        ...
