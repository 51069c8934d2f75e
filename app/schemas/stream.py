"""Server-sent event frames streamed by the query endpoints."""

import time
import uuid

from pydantic import BaseModel, Field

from app.core.config import STREAM_MODEL_LABEL

DONE_FRAME = "data: [DONE]\n\n"


class Delta(BaseModel):
    role: str = "assistant"
    content: str


class Choice(BaseModel):
    delta: Delta


class StreamFrame(BaseModel):
    """One SSE payload: {id, object, thread_id, model, created, choices: [{delta: {role, content}}]}."""

    id: str
    object: str
    thread_id: str
    model: str = STREAM_MODEL_LABEL
    created: int = Field(default_factory=lambda: int(time.time()))
    choices: list[Choice]

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json()}\n\n"


def new_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:8]}"


def build_frame(content: str, event_type: str, run_id: str, thread_id: str) -> StreamFrame:
    return StreamFrame(
        id=run_id,
        object=event_type,
        thread_id=thread_id,
        choices=[Choice(delta=Delta(content=content))],
    )
