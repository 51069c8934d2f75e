"""
API route aggregator: register endpoints; validation happens here, streaming is delegated to handlers.
"""

import json
import logging
import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from app.api.handlers import FINAL_RESPONSE_PREFIX, SSE_HEADERS, stream_agent_response
from app.core.config import THREAD_ID_HEADER
from app.schemas.query import ChatRequest, ErrorResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _event_stream(query: str, thread_id: str, final_prefix: str = "") -> StreamingResponse:
    return StreamingResponse(
        stream_agent_response(query, thread_id, final_prefix=final_prefix),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# --- System ---

@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


@router.get("/", tags=["system"])
def root():
    return {"status": "Travel agent backend running"}


# --- Query (SSE) ---

@router.get(
    "/query",
    tags=["query"],
    summary="Query the agent (SSE stream)",
    description="Stream agent thinking, tool calls and tool results, then the final answer and [DONE]. 400 when q is missing.",
    responses={400: {"model": ErrorResponse}},
)
async def get_query(request: Request, q: str | None = None):
    if not q or not q.strip():
        return _error(400, 'Missing query parameter "q"')
    thread_id = request.headers.get(THREAD_ID_HEADER) or str(uuid.uuid4())
    logger.info("[api:get_query] IN  q=%r thread_id=%s", q, thread_id)
    return _event_stream(q, thread_id)


@router.post(
    "/",
    tags=["query"],
    summary="Chat with the agent (SSE stream)",
    description="Body {messages: [{role, content}]}; all messages are flattened into the agent's context. 400 on a malformed body.",
    responses={400: {"model": ErrorResponse}},
)
async def post_chat(request: Request):
    thread_id = request.headers.get(THREAD_ID_HEADER) or str(uuid.uuid4())
    logger.info("[api:post_chat] Received request with thread_id: %s", thread_id)
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Request body must be valid JSON")
    try:
        body = ChatRequest.model_validate(payload)
    except ValidationError as e:
        logger.info("[api:post_chat] invalid body: %s", e.errors())
        return _error(400, "Request body must contain a non-empty 'messages' list of {role, content}")
    logger.info("[api:post_chat] latest message role=%s len=%d", body.messages[-1].role, len(body.messages[-1].content))
    return _event_stream(body.to_context(), thread_id, final_prefix=FINAL_RESPONSE_PREFIX)
