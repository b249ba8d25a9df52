"""
Chat API Routes

POST validates the payload before anything reaches the twin and
maps failures onto HTTP status codes; GET reports health.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ai_twin.api.main import get_config, get_twin
from ai_twin.database.base import StoreUnavailableError
from ai_twin.models.chat import ChatError, ChatValidationError, validate_chat_payload

logger = logging.getLogger("ai_twin.api.chat")

router = APIRouter()


def _error(status_code: int, error: ChatError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error.model_dump(exclude_none=True))


@router.post("/chat")
async def chat(request: Request, provider: Optional[str] = None):
    """
    Send a message to the twin.
    
    Returns the chat envelope on success (including clarification and
    degraded replies), 400 for invalid input, 503 when the memory store
    is unavailable and 500 for anything else.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, ChatError(error="INVALID_INPUT", message="Request body must be valid JSON"))
    
    try:
        chat_request = validate_chat_payload(payload, get_config().limits.max_message_length)
        twin = await get_twin()
        
        if provider and provider not in twin.generation.providers:
            raise ChatValidationError(
                "INVALID_INPUT",
                f"Unknown provider: {provider}",
                {"available_providers": sorted(twin.generation.providers)},
            )
        
        response = await twin.chat(chat_request, provider=provider)
        return response.model_dump(mode="json")
    
    except ChatValidationError as e:
        return _error(400, e.to_error())
    except StoreUnavailableError as e:
        logger.error(f"Memory store unavailable: {e}")
        return _error(503, ChatError(
            error="SERVICE_UNAVAILABLE",
            message="Memory store is unavailable. Please try again later.",
        ))
    except Exception as e:
        logger.exception(f"Chat processing failed: {e}")
        return _error(500, ChatError(
            error="PROCESSING_ERROR",
            message="Failed to process chat message",
            details={"error_type": type(e).__name__},
        ))


@router.get("/chat")
async def health():
    """Health check for the twin service and its datastore."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        twin = await get_twin()
        status = await twin.health_check()
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "status": "unhealthy",
                "error": type(e).__name__,
                "timestamp": timestamp,
            },
        )
    
    return {"success": True, "service": "AI Twin Chat", **status, "timestamp": timestamp}
