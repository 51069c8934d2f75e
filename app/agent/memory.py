"""
Conversation memory for one agent run.

A TokenMemory is created per request and handed to the runtime that owns it; no
instance is shared between requests. Token counts are estimated (~4 chars per token).
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 4
# A single tool result may use at most 1/TOOL_OUTPUT_SHARE of the budget.
TOOL_OUTPUT_SHARE = 2
TRUNCATION_MARKER = "\n[output truncated]"


def estimate_tokens(message: dict[str, Any]) -> int:
    size = len(message.get("content") or "")
    if message.get("tool_calls"):
        size += len(json.dumps(message["tool_calls"]))
    return MESSAGE_OVERHEAD_TOKENS + size // CHARS_PER_TOKEN


class TokenMemory:
    """
    Ordered chat messages kept under a token budget. The oldest turns are evicted first;
    system messages, the task and the latest turn are never evicted, and oversized tool
    results are clipped on the way in.
    """

    def __init__(self, max_tokens: int = 8000) -> None:
        self.max_tokens = max_tokens
        self._messages: list[dict[str, Any]] = []

    @property
    def messages(self) -> list[dict[str, Any]]:
        return list(self._messages)

    @property
    def total_tokens(self) -> int:
        return sum(estimate_tokens(m) for m in self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, role: str, content: str, **extra: Any) -> None:
        if role == "tool":
            content = self._clip_observation(content)
        message: dict[str, Any] = {"role": role, "content": content}
        message.update(extra)
        self._messages.append(message)
        self._evict()

    def reset(self) -> None:
        self._messages.clear()

    def _clip_observation(self, content: str) -> str:
        limit = (self.max_tokens // TOOL_OUTPUT_SHARE) * CHARS_PER_TOKEN
        if len(content) <= limit:
            return content
        logger.info("[memory] tool output clipped from %d to %d chars", len(content), limit)
        return content[:limit] + TRUNCATION_MARKER

    def _evict(self) -> None:
        while self.total_tokens > self.max_tokens:
            idx = self._oldest_evictable()
            if idx is None:
                return
            removed = self._messages.pop(idx)
            # Tool results must not outlive the assistant message that requested them.
            if removed.get("tool_calls"):
                while idx < len(self._messages) and self._messages[idx].get("role") == "tool":
                    self._messages.pop(idx)
            logger.debug("[memory] evicted role=%s total_tokens=%d", removed.get("role"), self.total_tokens)

    def _pinned(self) -> set[int]:
        """System messages, the task (first user message) and the latest turn stay."""
        pinned = {i for i, m in enumerate(self._messages) if m.get("role") == "system"}
        first_user = next((i for i, m in enumerate(self._messages) if m.get("role") == "user"), None)
        if first_user is not None:
            pinned.add(first_user)
        idx = len(self._messages) - 1
        while idx >= 0 and self._messages[idx].get("role") == "tool":
            pinned.add(idx)
            idx -= 1
        if idx >= 0:
            pinned.add(idx)
        return pinned

    def _oldest_evictable(self) -> int | None:
        pinned = self._pinned()
        for idx in range(len(self._messages)):
            if idx not in pinned:
                return idx
        return None
