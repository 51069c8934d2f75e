"""
Shared fakes: a scripted tool-calling LLM so agent tests never reach a real backend.
"""

import json
from typing import Any

import pytest


class ScriptedChat:
    """
    Stand-in for chat_with_tools_stream. Each call replays the next scripted turn
    (a list of stream items) or raises it when the turn is an exception.
    """

    def __init__(self, turns: list[Any]) -> None:
        self.turns = list(turns)
        self.calls: list[list[dict[str, Any]]] = []

    async def __call__(self, messages, tools, max_tokens=512):
        self.calls.append([dict(m) for m in messages])
        if not self.turns:
            raise AssertionError("ScriptedChat ran out of turns")
        turn = self.turns.pop(0)
        if isinstance(turn, BaseException):
            raise turn
        for item in turn:
            yield item

    @staticmethod
    def tool_turn(name: str, args: Any, thought: str = "", call_id: str = "call_1") -> list[tuple]:
        arguments = args if isinstance(args, str) else json.dumps(args)
        items: list[tuple] = [("content_delta", thought)] if thought else []
        items.append(("tool_calls", [{"id": call_id, "name": name, "arguments": arguments}], thought))
        return items

    @staticmethod
    def answer_turn(text: str) -> list[tuple]:
        return [("content_delta", text), ("content_done", text)]


@pytest.fixture
def scripted_chat():
    return ScriptedChat
