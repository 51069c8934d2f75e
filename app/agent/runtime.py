"""
LangGraph agent runtime: think -> act -> think ... -> final answer.

One AgentRuntime serves one run. Tools, memory and limits are passed in by the caller.
Progress is published as AgentEvent values on a queue owned by the AgentRun, so the
consumer sees them in the order they happened:
  update(thought) -> update(tool_name) -> update(tool_input) -> update(tool_output) ... -> update(final)
with partial_update for streamed tokens and error/retry when a step fails.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Literal, TypedDict

import httpx
import openai
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, StateGraph

from app.agent.llm import chat_with_tools_stream, parse_tool_arguments
from app.agent.memory import TokenMemory
from app.agent.tools import BaseTool
from app.core.config import (
    AGENT_MAX_ITERATIONS,
    AGENT_MAX_RETRIES_PER_STEP,
    AGENT_MAX_TOKENS,
    AGENT_TOTAL_MAX_RETRIES,
)
from app.core.errors import AgentBudgetExceededError, ModelOutputParseError, ToolError, ToolInputValidationError

logger = logging.getLogger(__name__)

# Failures that cost one retry instead of ending the run.
RETRYABLE_ERRORS = (ToolError, openai.OpenAIError, httpx.HTTPError)

SYSTEM_PROMPT = """You are a helpful assistant that completes the user's request step by step using the tools available.
Before each tool call, write one or two sentences describing what you are about to do.
Call at most one tool at a time and wait for its result before deciding the next step.
If a tool returns an error, correct the input and try again, or ask the user for the missing details.
When you have everything you need, reply to the user directly without calling a tool."""

# Observation for a model turn that failed, so the retry does not resend the same conversation.
FAILED_TURN_NOTE = "Your previous reply could not be used ({error}). Call one tool or answer the request directly."


class EventKind(str, Enum):
    UPDATE = "update"
    PARTIAL_UPDATE = "partial_update"
    RETRY = "retry"
    ERROR = "error"


class UpdateKey(str, Enum):
    THOUGHT = "thought"
    TOOL_NAME = "tool_name"
    TOOL_INPUT = "tool_input"
    TOOL_OUTPUT = "tool_output"
    FINAL = "final"


@dataclass(frozen=True)
class AgentEvent:
    kind: EventKind
    value: str = ""
    key: UpdateKey | None = None

    @classmethod
    def update(cls, key: UpdateKey, value: str) -> "AgentEvent":
        return cls(EventKind.UPDATE, value, key)


@dataclass(frozen=True)
class ExecutionConfig:
    max_retries_per_step: int = AGENT_MAX_RETRIES_PER_STEP
    total_max_retries: int = AGENT_TOTAL_MAX_RETRIES
    max_iterations: int = AGENT_MAX_ITERATIONS


@dataclass
class AgentResult:
    text: str
    iterations: int
    total_retries: int


class AgentState(TypedDict):
    iteration: int
    step_retries: int
    total_retries: int
    tool_call: dict[str, Any] | None
    final_answer: str | None


Emit = Callable[[AgentEvent], None]

_END_OF_STREAM = object()


class AgentRun:
    """Handle on a running agent: iterate it for events, then await result()."""

    def __init__(self, runtime: "AgentRuntime", prompt: str) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task = asyncio.create_task(runtime._execute(prompt, self._queue.put_nowait))
        self._task.add_done_callback(lambda _t: self._queue.put_nowait(_END_OF_STREAM))

    async def __aiter__(self) -> AsyncIterator[AgentEvent]:
        while True:
            event = await self._queue.get()
            if event is _END_OF_STREAM:
                return
            yield event

    async def result(self) -> AgentResult:
        return await self._task

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()


class AgentRuntime:
    def __init__(
        self,
        tools: list[BaseTool],
        memory: TokenMemory,
        config: ExecutionConfig | None = None,
        chat_stream: Callable[..., AsyncIterator[tuple]] = chat_with_tools_stream,
        system_prompt: str = SYSTEM_PROMPT,
        max_tokens: int = AGENT_MAX_TOKENS,
    ) -> None:
        self.tools = {t.name: t for t in tools}
        if len(self.tools) != len(tools):
            raise ValueError("Tool names must be unique")
        self.memory = memory
        self.config = config or ExecutionConfig()
        self.chat_stream = chat_stream
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self._tool_specs = [t.spec() for t in tools]

    def run(self, prompt: str) -> AgentRun:
        """Start the agent on prompt. Must be called from a running event loop."""
        return AgentRun(self, prompt)

    def build_graph(self, emit: Emit):
        """
        think: one LLM turn; picks a tool or answers.
        act: runs the picked tool and records the observation.
        """

        async def think(state: AgentState) -> dict:
            return await self._think(state, emit)

        async def act(state: AgentState) -> dict:
            return await self._act(state, emit)

        graph = StateGraph(AgentState)
        graph.add_node("think", think)
        graph.add_node("act", act)
        graph.set_entry_point("think")
        graph.add_conditional_edges("think", _route_after_think)
        graph.add_edge("act", "think")
        return graph.compile()

    async def _execute(self, prompt: str, emit: Emit) -> AgentResult:
        logger.info("[runtime] START prompt_len=%d tools=%s", len(prompt), list(self.tools))
        self.memory.add("system", self.system_prompt)
        self.memory.add("user", prompt)
        initial: AgentState = {
            "iteration": 0,
            "step_retries": 0,
            "total_retries": 0,
            "tool_call": None,
            "final_answer": None,
        }
        graph = self.build_graph(emit)
        try:
            final = await graph.ainvoke(
                initial,
                config={"recursion_limit": 2 * self.config.max_iterations + 2},
            )
        except GraphRecursionError as e:
            raise AgentBudgetExceededError("Agent exceeded its step budget") from e
        result = AgentResult(
            text=final.get("final_answer") or "",
            iterations=final.get("iteration", 0),
            total_retries=final.get("total_retries", 0),
        )
        logger.info("[runtime] END iterations=%d retries=%d answer_len=%d", result.iterations, result.total_retries, len(result.text))
        return result

    async def _plan(self, emit: Emit) -> tuple[str, list[dict[str, Any]]]:
        content = ""
        tool_calls: list[dict[str, Any]] = []
        async for item in self.chat_stream(self.memory.messages, self._tool_specs, max_tokens=self.max_tokens):
            if item[0] == "content_delta":
                emit(AgentEvent(EventKind.PARTIAL_UPDATE, item[1]))
            elif item[0] == "content_done":
                content = item[1] or ""
            elif item[0] == "tool_calls":
                tool_calls = item[1] or []
                content = item[2] or ""
        return content, tool_calls

    async def _think(self, state: AgentState, emit: Emit) -> dict:
        iteration = state["iteration"] + 1
        if iteration > self.config.max_iterations:
            raise AgentBudgetExceededError(
                f"Agent exceeded max iterations ({self.config.max_iterations})",
                iterations=state["iteration"],
                total_retries=state["total_retries"],
            )
        update: dict[str, Any] = {"iteration": iteration, "tool_call": None, "final_answer": None}
        try:
            content, tool_calls = await self._plan(emit)
            if not tool_calls and not content.strip():
                raise ModelOutputParseError("Model returned neither a tool call nor an answer")
        except RETRYABLE_ERRORS as e:
            update.update(self._register_failure({**state, "iteration": iteration}, e, emit))
            self.memory.add("user", FAILED_TURN_NOTE.format(error=e))
            return update

        content = content.strip()
        if not tool_calls:
            self.memory.add("assistant", content)
            emit(AgentEvent.update(UpdateKey.FINAL, content))
            update["final_answer"] = content
            return update

        call = tool_calls[0]
        call_id = call.get("id") or f"call_{iteration}"
        arguments = call.get("arguments") or "{}"
        if content:
            emit(AgentEvent.update(UpdateKey.THOUGHT, content))
        self.memory.add(
            "assistant",
            content,
            tool_calls=[{"id": call_id, "type": "function", "function": {"name": call.get("name", ""), "arguments": arguments}}],
        )
        emit(AgentEvent.update(UpdateKey.TOOL_NAME, call.get("name", "")))
        emit(AgentEvent.update(UpdateKey.TOOL_INPUT, arguments))
        update["tool_call"] = {"id": call_id, "name": call.get("name", ""), "arguments": arguments}
        return update

    async def _act(self, state: AgentState, emit: Emit) -> dict:
        call = state["tool_call"] or {}
        name = call.get("name", "")
        try:
            tool = self.tools.get(name)
            if tool is None:
                raise ToolInputValidationError(f"Unknown tool {name!r}. Available tools: {', '.join(self.tools)}")
            try:
                arguments = parse_tool_arguments(call.get("arguments"))
            except ValueError as e:
                raise ToolInputValidationError(f"Tool input is not a valid JSON object: {e}") from e
            output = await tool.run(arguments)
        except RETRYABLE_ERRORS as e:
            self.memory.add("tool", f"Error: {e}", tool_call_id=call.get("id", ""))
            update = self._register_failure(state, e, emit)
            update["tool_call"] = None
            return update

        self.memory.add("tool", output, tool_call_id=call.get("id", ""))
        emit(AgentEvent.update(UpdateKey.TOOL_OUTPUT, output))
        return {"tool_call": None, "step_retries": 0}

    def _register_failure(self, state: AgentState, error: Exception, emit: Emit) -> dict:
        step_retries = state["step_retries"] + 1
        total_retries = state["total_retries"] + 1
        emit(AgentEvent(EventKind.ERROR, str(error)))
        if step_retries > self.config.max_retries_per_step or total_retries > self.config.total_max_retries:
            raise AgentBudgetExceededError(
                f"Agent gave up after {total_retries} retries: {error}",
                iterations=state["iteration"],
                total_retries=total_retries,
            ) from error
        logger.warning(
            "[runtime] step failed (%s); retry %d/%d total %d/%d",
            error,
            step_retries,
            self.config.max_retries_per_step,
            total_retries,
            self.config.total_max_retries,
        )
        emit(AgentEvent(EventKind.RETRY, f"{step_retries}/{self.config.max_retries_per_step}"))
        return {"step_retries": step_retries, "total_retries": total_retries}


def _route_after_think(state: AgentState) -> Literal["act", "think", "__end__"]:
    if state.get("final_answer") is not None:
        return END
    if state.get("tool_call"):
        return "act"
    return "think"
