"""
FastAPI backend for the brainstorming relay.

Endpoints:
    GET  /health                       — Health check
    WS   /ws/session                   — One participant connection per session
    POST /webhook/assistant            — Voice assistant webhook
    GET  /api/sessions/{session_id}    — Session snapshot
"""

import json
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import uvicorn

from core_intelligence.engine.brainstorm_tool import run_function_call
from adapters.websocket_subscriber import WebSocketSubscriber
from domain.models import FunctionCall, Utterance
from services.conversation_pipeline import ConversationPipeline
from shared_utils.config_loader import get_settings
from shared_utils.logging_utils import ContextualLogger
from shared_utils.constants import (
    APIEndpoints,
    ErrorCode,
    InboundMessage,
    LogScope,
    WebhookMessage,
)
from shared_utils.error_handler import (
    AppException, ValidationError, handle_error
)
from shared_utils.di_container import get_di_container
from shared_utils.validation import InputValidator


# ---------------------------------------------------------------------------
# Application bootstrap
# ---------------------------------------------------------------------------

settings = get_settings()
logger = ContextualLogger(scope=LogScope.API)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=settings.app_description,
)

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

logger.info(
    "api_initialized",
    environment=settings.environment,
    llm_provider=settings.llm_provider,
)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get(APIEndpoints.HEALTH)
def health_check() -> dict:
    """Health check endpoint."""
    logger.debug("health_check_requested")
    return {
        "status": "healthy",
        "environment": settings.environment,
        "llm_provider": settings.llm_provider,
        "active_sessions": len(get_di_container().get_session_registry()),
    }


# ======================================================================
# Participant transport
# ======================================================================

def _build_utterance(fields: Dict[str, Any]) -> Utterance:
    try:
        return Utterance(**fields)
    except PydanticValidationError as e:
        raise ValidationError(
            "Malformed utterance",
            context={"errors": [err["msg"] for err in e.errors()]},
        ) from e


async def _dispatch(
    pipeline: ConversationPipeline,
    session_id: str,
    message: Dict[str, Any],
    websocket: WebSocket,
) -> None:
    """Route one inbound message to the pipeline."""
    kind = message.get("type")

    if kind == InboundMessage.MEETING_JOINED:
        meeting_id = InputValidator.validate_non_empty_string(message.get("meetingId"), "meetingId")
        await pipeline.bind_meeting(session_id, meeting_id)

    elif kind == InboundMessage.UTTERANCE:
        fields = {
            "role": message.get("role") or "participant",
            "text": message.get("text") or "",
            "is_final": message.get("final", True),
            "speaker": message.get("speaker"),
        }
        if message.get("timestamp"):
            fields["timestamp"] = message["timestamp"]
        await pipeline.handle_utterance(session_id, _build_utterance(fields))

    elif kind == InboundMessage.REQUEST_BRAINSTORM:
        context = InputValidator.validate_optional_string(message.get("context"), "context")
        await pipeline.request_brainstorm(session_id, context)

    elif kind == InboundMessage.PEER_SUGGESTION:
        idea = InputValidator.validate_optional_string(message.get("idea"), "idea")
        source = InputValidator.validate_optional_string(message.get("from"), "from")
        await pipeline.relay_peer_suggestion(session_id, idea or "", source=source or None)

    elif kind == InboundMessage.PING:
        await websocket.send_json({"event": "pong", "sessionId": session_id})

    else:
        raise ValidationError(f"Unknown message type: {kind}", context={"type": kind})


@app.websocket(APIEndpoints.SESSION_SOCKET)
async def session_socket(websocket: WebSocket) -> None:
    """One connection, one session.

    Every broadcast for the session is sent as a single JSON frame. Errors
    are answered on the same connection and never broadcast.
    """
    await websocket.accept()

    try:
        pipeline = get_di_container().get_conversation_pipeline()
    except RuntimeError as e:
        logger.error("session_pipeline_unavailable", error=str(e))
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    session_id = str(uuid.uuid4())
    subscriber = WebSocketSubscriber(websocket, session_id)
    pipeline.broadcaster.subscribe(session_id, subscriber)
    await pipeline.join(session_id)
    logger.info("session_socket_connected", session_id=session_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await subscriber.send_error("Message is not valid JSON", ErrorCode.INVALID_INPUT.value)
                continue
            if not isinstance(message, dict):
                await subscriber.send_error("Message must be a JSON object", ErrorCode.INVALID_INPUT.value)
                continue

            try:
                await _dispatch(pipeline, session_id, message, websocket)
            except AppException as e:
                logger.warning(
                    "session_message_rejected",
                    session_id=session_id,
                    error_code=e.error_code,
                )
                await subscriber.send_error(e.message, e.error_code)
            except Exception as e:
                error_response = handle_error(e, scope=LogScope.API)
                await subscriber.send_error(
                    error_response["error"]["message"],
                    error_response["error"]["code"],
                )

    except WebSocketDisconnect:
        logger.info("session_socket_disconnected", session_id=session_id)
    finally:
        await pipeline.leave(session_id)


# ======================================================================
# Voice assistant webhook
# ======================================================================

@app.post(APIEndpoints.ASSISTANT_WEBHOOK)
@limiter.limit(settings.webhook_rate_limit)
async def assistant_webhook(
    request: Request,
    body: dict,
) -> JSONResponse:
    """Receive events from the voice assistant.

    Body JSON:
        message (dict): ``{"type": ..., ...}``; ``status-update`` is logged,
            ``transcript`` is routed to ``sessionId`` as an utterance (or shown
            to every open session when no id is given) and ``function-call``
            runs the named function.
    """
    try:
        message = body.get("message")
        if not isinstance(message, dict):
            raise ValidationError("message is required", context={"body": body})

        kind = message.get("type")
        logger.info("webhook_received", message_type=kind)

        if kind == WebhookMessage.STATUS_UPDATE:
            logger.info("assistant_status_update", status=message.get("status"))

        elif kind == WebhookMessage.TRANSCRIPT:
            session_id = InputValidator.validate_optional_string(message.get("sessionId"), "sessionId")
            utterance = _build_utterance({
                "role": message.get("role") or "participant",
                "text": message.get("transcript") or "",
                "is_final": message.get("transcriptType", "final") != "partial",
            })
            pipeline = get_di_container().get_conversation_pipeline()
            if session_id:
                await pipeline.handle_utterance(session_id, utterance)
            else:
                await pipeline.broadcast_transcript(utterance)

        elif kind == WebhookMessage.FUNCTION_CALL:
            function_call = message.get("functionCall") or {}
            if not isinstance(function_call, dict) or not function_call.get("name"):
                raise ValidationError("functionCall.name is required", context={"type": kind})
            name = InputValidator.validate_non_empty_string(function_call["name"], "functionCall.name")
            parameters = function_call.get("parameters") or {}
            if not isinstance(parameters, dict):
                raise ValidationError("functionCall.parameters must be an object", context={"function": name})
            idea = run_function_call(FunctionCall(name=name, arguments=parameters))
            return JSONResponse(content={"result": idea.model_dump(mode="json")})

        return JSONResponse(content={"received": True})

    except AppException as e:
        logger.warning("webhook_error", error_code=e.error_code)
        return JSONResponse(status_code=e.http_status, content=e.to_dict())
    except Exception as e:
        error_response = handle_error(e, scope=LogScope.API)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )


# ======================================================================
# Session inspection
# ======================================================================

@app.get(APIEndpoints.SESSION_DETAIL)
async def get_session(session_id: str) -> JSONResponse:
    """Return a snapshot of an open session."""
    try:
        registry = get_di_container().get_session_registry()
        snapshot = registry.get(session_id).snapshot()
        return JSONResponse(content=snapshot.model_dump(mode="json"))
    except AppException as e:
        return JSONResponse(status_code=e.http_status, content=e.to_dict())
    except Exception as e:
        error_response = handle_error(e, scope=LogScope.API)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info"
    )
