"""
API handlers: bridge the agent orchestrator and the SSE response.

Responsibility: Run one query as a background task, relay its frames through a queue in the
order they are written, and close the stream with the final answer (or one error frame)
followed by exactly one [DONE]. Lives in the API layer so services stay free of HTTP types.
"""

import asyncio
import logging
from typing import AsyncIterator

from app.schemas.stream import DONE_FRAME, build_frame, new_run_id
from app.services.agent_service import ASSISTANT_RESPONSE, RUN_FAILED, run_query

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

FINAL_RESPONSE_PREFIX = "<h2> Final Response: </h2> <br/>"


class QueueFrameWriter:
    """FrameWriter that renders frames to SSE text and hands them to the response generator."""

    def __init__(self, queue: asyncio.Queue, thread_id: str, run_id: str | None = None) -> None:
        self.queue = queue
        self.thread_id = thread_id
        self.run_id = run_id or new_run_id()

    def render(self, content: str, event_type: str) -> str:
        return build_frame(content, event_type, self.run_id, self.thread_id).to_sse()

    async def write(self, content: str, event_type: str) -> None:
        await self.queue.put(self.render(content, event_type))


async def stream_agent_response(query: str, thread_id: str, final_prefix: str = "") -> AsyncIterator[str]:
    """Yield SSE frames for one agent run. Failures after the stream opened become an in-band error frame."""
    queue: asyncio.Queue = asyncio.Queue()
    writer = QueueFrameWriter(queue, thread_id)
    task = asyncio.create_task(run_query(query, writer))
    task.add_done_callback(lambda _t: queue.put_nowait(None))
    logger.info("[handlers:stream] START thread_id=%s run_id=%s", thread_id, writer.run_id)
    try:
        while (chunk := await queue.get()) is not None:
            yield chunk
        try:
            result = task.result()
        except Exception as e:
            logger.exception("[handlers:stream] agent run failed thread_id=%s", thread_id)
            yield writer.render(f"Error: {e}", RUN_FAILED)
        else:
            yield writer.render(final_prefix + result, ASSISTANT_RESPONSE)
        yield DONE_FRAME
        logger.info("[handlers:stream] END thread_id=%s", thread_id)
    finally:
        if not task.done():
            logger.info("[handlers:stream] client went away, cancelling run thread_id=%s", thread_id)
            task.cancel()
