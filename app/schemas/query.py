"""Schemas for the query endpoints."""

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: str = Field(..., min_length=1, description="Message author, e.g. user or assistant.")
    content: str = Field("", description="Message text.")


class ChatRequest(BaseModel):
    """Request body for POST /. All messages are flattened into one context string for the agent."""

    messages: list[ChatMessage] = Field(..., min_length=1, description="Conversation so far, oldest first.")

    def to_context(self) -> str:
        return "".join(f"{m.role}: {m.content}\n" for m in self.messages)


class ErrorResponse(BaseModel):
    error: str
