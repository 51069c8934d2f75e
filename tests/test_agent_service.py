"""
Tests for the orchestrator: runtime events become frames, in order, on the caller's sink.
"""

import pytest

from app.agent.runtime import UpdateKey
from app.agent.tools import CalculatorTool
from app.core.errors import AgentBudgetExceededError, ServiceUnavailableError
from app.services.agent_service import (
    THINKING_STEP,
    TOOL_CALL,
    TOOL_RESPONSE,
    build_prompt,
    default_tools,
    format_update,
    run_query,
)


class CollectingSink:
    def __init__(self) -> None:
        self.frames: list[tuple[str, str]] = []

    async def write(self, content: str, event_type: str) -> None:
        self.frames.append((content, event_type))


def test_format_update_templates() -> None:
    assert format_update(UpdateKey.THOUGHT, "Looking up prices.") == (
        "<h3>Agent is thinking: </h3> <br/>Looking up prices.\n\n <br/>",
        THINKING_STEP,
    )
    assert format_update(UpdateKey.TOOL_NAME, "Calculator") == (
        "<h3>Tool <i>Calculator</i> is being invoked.</h3> \n\n",
        TOOL_CALL,
    )
    content, event_type = format_update(UpdateKey.TOOL_OUTPUT, "14")
    assert content.startswith("<h3>Tool returned output:</h3>")
    assert "```14```" in content
    assert event_type == TOOL_RESPONSE
    assert format_update(UpdateKey.FINAL, "done") is None


def test_default_tools() -> None:
    assert [t.name for t in default_tools(include_reminders=False)] == ["FlightCostLookup", "FlightBooking", "Calculator"]
    assert default_tools(include_reminders=True)[-1].name == "ReminderTool"


def test_prompt_wraps_query() -> None:
    prompt = build_prompt("book JFK to LHR")
    assert prompt.endswith("# User Wants to:\nbook JFK to LHR")


@pytest.mark.asyncio
async def test_frames_follow_the_agent(scripted_chat) -> None:
    chat = scripted_chat([
        scripted_chat.tool_turn("Calculator", {"expression": "2+3*4"}, thought="I will compute it."),
        scripted_chat.answer_turn("The answer is 14."),
    ])
    sink = CollectingSink()

    answer = await run_query("what is 2+3*4?", sink, tools=[CalculatorTool()], chat_stream=chat)

    assert answer == "The answer is 14."
    contents = [c for c, _ in sink.frames]
    assert len(contents) == 4
    assert contents[0].startswith("<h3>Agent is thinking: </h3>") and "I will compute it." in contents[0]
    assert "<i>Calculator</i>" in contents[1]
    assert '{"expression": "2+3*4"}' in contents[2]
    assert "```14```" in contents[3]
    # The final answer is returned, not written.
    assert all("The answer is 14." not in c for c in contents)


@pytest.mark.asyncio
async def test_partial_tokens_go_to_stdout(scripted_chat, capsys) -> None:
    chat = scripted_chat([scripted_chat.answer_turn("streamed words")])
    await run_query("hi", CollectingSink(), tools=[CalculatorTool()], chat_stream=chat)
    assert "streamed words" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_sequential_queries_do_not_share_memory(scripted_chat) -> None:
    first = scripted_chat([scripted_chat.answer_turn("first answer")])
    second = scripted_chat([scripted_chat.answer_turn("second answer")])

    await run_query("my secret is 1234", CollectingSink(), tools=[CalculatorTool()], chat_stream=first)
    await run_query("what is my secret?", CollectingSink(), tools=[CalculatorTool()], chat_stream=second)

    seen = second.calls[0]
    assert [m["role"] for m in seen] == ["system", "user"]
    assert all("1234" not in (m.get("content") or "") for m in seen)
    assert all("first answer" not in (m.get("content") or "") for m in seen)


@pytest.mark.asyncio
async def test_backend_failure_propagates(scripted_chat) -> None:
    chat = scripted_chat([ServiceUnavailableError("No LLM backend configured")])
    with pytest.raises(ServiceUnavailableError):
        await run_query("hi", CollectingSink(), tools=[CalculatorTool()], chat_stream=chat)


@pytest.mark.asyncio
async def test_exhausted_retries_propagate(scripted_chat) -> None:
    chat = scripted_chat([scripted_chat.tool_turn("Calculator", {"expression": "1/0"}) for _ in range(5)])
    sink = CollectingSink()
    with pytest.raises(AgentBudgetExceededError):
        await run_query("divide", sink, tools=[CalculatorTool()], chat_stream=chat)
    # tool_name + tool_input per attempt, no tool output
    assert len(sink.frames) == 8
    assert all(not c.startswith("<h3>Tool returned output") for c, _ in sink.frames)
