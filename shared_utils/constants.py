"""
Constants management.
Centralized configuration for all magic values, model IDs, and defaults.
"""

from enum import Enum
from typing import Final, Tuple


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    BEDROCK = "bedrock"
    OPENAI = "openai"


# Model IDs
class ModelIDs:
    """Centralized model identifiers."""
    # OpenAI chat
    OPENAI_GPT_4: Final[str] = "gpt-4"

    # Bedrock LLM
    BEDROCK_CLAUDE_3_HAIKU: Final[str] = "anthropic.claude-3-haiku-20240307-v1:0"


# Default values
class Defaults:
    """Defaults for the brainstorming pipeline."""
    TRANSCRIPT_WINDOW: Final[int] = 10
    MIN_TRIGGER_LENGTH: Final[int] = 4
    MIN_CONTEXT_LENGTH: Final[int] = 20
    MIN_SUGGESTION_LENGTH: Final[int] = 10
    MAX_SUGGESTIONS_PER_TRIGGER: Final[int] = 5
    DEDUP_PREFIX_OVERLAP: Final[int] = 24
    GENERATION_TIMEOUT: Final[float] = 10.0
    LLM_TEMPERATURE: Final[float] = 0.8
    IDEA_CONFIDENCE: Final[float] = 0.85
    AWS_REGION: Final[str] = "eu-west-2"
    TRIGGER_PHRASES: Final[Tuple[str, ...]] = (
        "stuck",
        "blocked",
        "ideas",
        "brainstorm",
        "think",
        "suggest",
        "help",
        "creative",
        "solution",
        "problem",
        "challenge",
        "what if",
        "how can we",
        "any thoughts",
        "opinions",
        "feedback",
    )


# Logging scopes
class LogScope:
    """Standardized logging scope names."""
    CONFIG = "config_loader"
    API = "api"
    ERROR_HANDLER = "error_handler"
    PROVIDER = "provider"
    ADAPTER = "adapter"
    REGISTRY = "session_registry"
    TRIGGER = "trigger_detector"
    PARSER = "suggestion_parser"
    DEDUP = "deduplicator"
    ORCHESTRATION = "orchestration"
    BROADCAST = "broadcast"
    PIPELINE = "pipeline"


# API endpoints and paths
class APIEndpoints:
    """API route definitions."""
    HEALTH = "/health"
    SESSION_SOCKET = "/ws/session"
    SESSION_DETAIL = "/api/sessions/{session_id}"
    ASSISTANT_WEBHOOK = "/webhook/assistant"


# Message types sent by participant connections
class InboundMessage:
    """Inbound WebSocket message types."""
    MEETING_JOINED = "meeting-joined"
    UTTERANCE = "utterance"
    REQUEST_BRAINSTORM = "request-brainstorm"
    PEER_SUGGESTION = "peer-suggestion"
    PING = "ping"


# Voice assistant webhook message types
class WebhookMessage:
    """Assistant webhook message types."""
    STATUS_UPDATE = "status-update"
    TRANSCRIPT = "transcript"
    FUNCTION_CALL = "function-call"


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes for consistency."""
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_INPUT = "INVALID_INPUT"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    INVALID_UTTERANCE = "INVALID_UTTERANCE"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    DUPLICATE_SESSION = "DUPLICATE_SESSION"
    GENERATION_FAILED = "GENERATION_FAILED"
    PARSE_FAILED = "PARSE_FAILED"


# Tool exposed to the generative capability
BRAINSTORM_TOOL_NAME: Final[str] = "generate_brainstorm_idea"
