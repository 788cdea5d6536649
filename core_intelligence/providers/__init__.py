"""
Abstract base classes for swappable providers.
Enables dependency injection and flexible component swapping.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import json
import logging

from domain.models import FunctionCall, GenerationRequest, GenerationResult
from shared_utils.constants import BRAINSTORM_TOOL_NAME


# OpenAI-style tool schema for the brainstorm function
BRAINSTORM_TOOL_SCHEMA: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": BRAINSTORM_TOOL_NAME,
        "description": "Generate creative brainstorming ideas based on meeting context",
        "parameters": {
            "type": "object",
            "properties": {
                "context": {"type": "string"},
                "topic": {"type": "string"},
            },
        },
    },
}


class BaseProvider(ABC):
    """Base class for all providers."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @abstractmethod
    def initialize(self) -> None:
        """Initialize provider. Called after instantiation."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available and credentials are valid."""
        pass


class LLMProviderBase(BaseProvider):
    """Abstract base for LLM providers."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate a brainstorm response."""
        pass

    @staticmethod
    def build_user_message(request: GenerationRequest) -> str:
        """Combine prior conversation context with the prompt text."""
        if request.context:
            return f"Meeting conversation so far:\n{request.context}\n\n{request.prompt}"
        return request.prompt


def function_call_from_tool_calls(tool_calls: Optional[List[Any]]) -> Optional[FunctionCall]:
    """Extract the first tool call from an OpenAI-style tool_calls list.

    Entries may be SDK objects (``.function.name``) or plain dicts. Arguments
    arrive as a JSON string; undecodable arguments become an empty dict.
    """
    if not tool_calls:
        return None

    first = tool_calls[0]
    function = first.get("function") if isinstance(first, dict) else getattr(first, "function", None)
    if function is None:
        return None

    if isinstance(function, dict):
        name, raw_args = function.get("name"), function.get("arguments")
    else:
        name, raw_args = getattr(function, "name", None), getattr(function, "arguments", None)
    if not name:
        return None

    arguments: Dict[str, Any] = {}
    if isinstance(raw_args, dict):
        arguments = raw_args
    elif isinstance(raw_args, str) and raw_args.strip():
        try:
            decoded = json.loads(raw_args)
        except json.JSONDecodeError:
            decoded = {}
        if isinstance(decoded, dict):
            arguments = decoded

    return FunctionCall(name=name, arguments=arguments)
