"""
Agent: orchestrate one query through the tool-calling agent and stream its progress.

Responsibility: Build a fresh memory + runtime per request, translate runtime events into
human-readable frames written to a sink, and return the final answer. Called by the API; no HTTP here.
"""

import logging
import sys
from typing import AsyncIterator, Callable, Protocol

from app.agent.memory import TokenMemory
from app.agent.runtime import AgentEvent, AgentRuntime, EventKind, ExecutionConfig, UpdateKey
from app.agent.tools import BaseTool, CalculatorTool, FlightBookingTool, FlightCostLookupTool, ReminderTool
from app.core.config import (
    AGENT_MAX_ITERATIONS,
    AGENT_MAX_RETRIES_PER_STEP,
    AGENT_TOTAL_MAX_RETRIES,
    ENABLE_REMINDER_TOOL,
    MEMORY_MAX_TOKENS,
)

logger = logging.getLogger(__name__)

# Event-type labels carried in each frame's "object" field.
ASSISTANT_RESPONSE = "thread.message.delta"
THINKING_STEP = "thread.run.step.delta"
TOOL_CALL = "thread.run.step.delta"
TOOL_RESPONSE = "thread.run.step.delta"
RUN_FAILED = "thread.run.failed"

EXECUTION_CONFIG = ExecutionConfig(
    max_retries_per_step=AGENT_MAX_RETRIES_PER_STEP,
    total_max_retries=AGENT_TOTAL_MAX_RETRIES,
    max_iterations=AGENT_MAX_ITERATIONS,
)

_DIVIDER = "\n-------------------------------------------\n"


class FrameWriter(Protocol):
    async def write(self, content: str, event_type: str) -> None: ...


def build_prompt(query: str) -> str:
    return f"""
You are an agent designed to assist the user to the best of your abilities using the tools you have available.
Carefully interpret their request and execute the most appropriate actions to help them.
--------------------------------------------------------
# User Wants to:
{query}
""".strip()


def default_tools(include_reminders: bool = ENABLE_REMINDER_TOOL) -> list[BaseTool]:
    tools: list[BaseTool] = [FlightCostLookupTool(), FlightBookingTool(), CalculatorTool()]
    if include_reminders:
        tools.append(ReminderTool())
    return tools


def format_update(key: UpdateKey, value: str) -> tuple[str, str] | None:
    """Frame content and event type for an update, or None when the update is not streamed."""
    if key is UpdateKey.THOUGHT:
        return f"<h3>Agent is thinking: </h3> <br/>{value}\n\n <br/>", THINKING_STEP
    if key is UpdateKey.TOOL_NAME:
        return f"<h3>Tool <i>{value}</i> is being invoked.</h3> \n\n", TOOL_CALL
    if key is UpdateKey.TOOL_INPUT:
        return f"<h3>Tool call initialized with input:</h3> \n{_DIVIDER}```{value}```\n\n{_DIVIDER}", THINKING_STEP
    if key is UpdateKey.TOOL_OUTPUT:
        return f"<h3>Tool returned output:</h3> \n{_DIVIDER}```{value}```\n\n{_DIVIDER}", TOOL_RESPONSE
    return None


async def _dispatch(event: AgentEvent, sink: FrameWriter) -> None:
    if event.kind is EventKind.PARTIAL_UPDATE:
        sys.stdout.write(event.value)
        sys.stdout.flush()
    elif event.kind is EventKind.ERROR:
        logger.warning("[agent_service] agent error: %s", event.value)
    elif event.kind is EventKind.RETRY:
        logger.info("[agent_service] retry %s", event.value)
    elif event.kind is EventKind.UPDATE and event.key is not None:
        logger.info("[agent_service] update (%s): %r", event.key.value, event.value[:200])
        frame = format_update(event.key, event.value)
        if frame is not None:
            await sink.write(*frame)


async def run_query(
    query: str,
    sink: FrameWriter,
    *,
    tools: list[BaseTool] | None = None,
    chat_stream: Callable[..., AsyncIterator[tuple]] | None = None,
) -> str:
    """
    Run the agent on query, writing one frame per streamed update to sink in arrival order.
    Returns the final answer text; raises when the run fails.
    """
    memory = TokenMemory(max_tokens=MEMORY_MAX_TOKENS)
    runtime_kwargs = {"chat_stream": chat_stream} if chat_stream is not None else {}
    runtime = AgentRuntime(
        tools=tools if tools is not None else default_tools(),
        memory=memory,
        config=EXECUTION_CONFIG,
        **runtime_kwargs,
    )
    logger.info("[agent_service:run_query] IN  query_len=%d", len(query))
    run = runtime.run(build_prompt(query))
    try:
        async for event in run:
            await _dispatch(event, sink)
        result = await run.result()
    finally:
        if not run.done():
            run.cancel()
    logger.info("[agent_service:run_query] OUT iterations=%d answer_len=%d", result.iterations, len(result.text))
    return result.text
