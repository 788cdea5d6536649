"""
Local implementation of the ``generate_brainstorm_idea`` function.

The voice assistant may answer with a function invocation instead of text,
and its webhook can call the function directly. Both paths end here.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from domain.models import BrainstormIdea, FunctionCall
from shared_utils.constants import BRAINSTORM_TOOL_NAME, Defaults, LogScope
from shared_utils.error_handler import ValidationError
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.ORCHESTRATION)

IDEA_TEMPLATE = (
    "Based on the discussion about {topic}, consider exploring: innovative "
    "solutions that combine existing technologies in new ways."
)

DEFAULT_TOPIC = "the current topic"


def generate_brainstorm_idea(context: Optional[str] = None, topic: Optional[str] = None) -> BrainstormIdea:
    """Produce one idea for *topic*, falling back to a generic topic."""
    resolved_topic = (topic or "").strip() or DEFAULT_TOPIC
    idea = BrainstormIdea(
        idea=IDEA_TEMPLATE.format(topic=resolved_topic),
        confidence=Defaults.IDEA_CONFIDENCE,
    )
    logger.info(
        "brainstorm_idea_generated",
        topic=resolved_topic,
        context_len=len(context or ""),
    )
    return idea


def run_function_call(call: FunctionCall) -> BrainstormIdea:
    """Dispatch a function invocation by name.

    Raises:
        ValidationError: For any function other than generate_brainstorm_idea.
    """
    if call.name != BRAINSTORM_TOOL_NAME:
        raise ValidationError("Unknown function", context={"function": call.name})

    arguments: Dict[str, Any] = call.arguments or {}
    context = arguments.get("context")
    topic = arguments.get("topic")
    return generate_brainstorm_idea(
        context=context if isinstance(context, str) else None,
        topic=topic if isinstance(topic, str) else None,
    )
