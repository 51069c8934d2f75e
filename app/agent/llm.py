"""
Agent LLM: OpenAI-compatible endpoint (primary) or Hugging Face (fallback).
When OPENAI_API_KEY is set, uses OpenAI chat completions (OPENAI_BASE_URL may point at
Ollama or any compatible gateway); otherwise plain completions use the HF router.
Tool calling always needs the OpenAI-compatible endpoint.
"""

import json
import logging
from typing import Any, AsyncIterator

import httpx
from openai import AsyncOpenAI

from app.core.config import (
    AGENT_LLM_MODEL,
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
)
from app.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


def _openai_client() -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=OPENAI_API_KEY,
        base_url=OPENAI_BASE_URL or None,
        timeout=LLM_API_TIMEOUT,
    )


async def _call_openai(prompt: str, model: str, max_tokens: int) -> str:
    """Call OpenAI chat completions. Returns generated text."""
    client = _openai_client()
    response = await client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
    )
    msg = response.choices[0].message if response.choices else None
    out = ((msg.content if msg else None) or "").strip()
    logger.info("[llm:openai] OUT model=%s response_len=%d", model, len(out))
    return out


async def _call_hf(prompt: str, max_tokens: int) -> str:
    """Call Hugging Face router chat completions. Returns generated text."""
    headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
    payload = {
        "model": HF_LLM_MODEL,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
    }
    try:
        async with httpx.AsyncClient(timeout=LLM_API_TIMEOUT) as client:
            response = await client.post(HF_CHAT_URL, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("[llm:hf] request failed: %s", e)
        raise ServiceUnavailableError(f"Hugging Face LLM request failed: {e}") from e
    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        msg = choices[0].get("message") or {}
        out = (msg.get("content") or "").strip()
        logger.info("[llm:hf] OUT response_len=%d", len(out))
        return out
    return ""


async def complete(prompt: str, model: str | None = None, max_tokens: int = 512) -> str:
    """
    Single-turn text generation. Uses the OpenAI-compatible endpoint when OPENAI_API_KEY is set,
    else Hugging Face. Raises ServiceUnavailableError when neither backend is configured.
    """
    logger.info("[llm] IN  prompt_len=%d model=%s max_tokens=%d", len(prompt), model, max_tokens)
    logger.debug("[llm] prompt_sample=%r", prompt[:500])
    if OPENAI_API_KEY:
        return await _call_openai(prompt, model or AGENT_LLM_MODEL, max_tokens)
    if HF_API_KEY:
        return await _call_hf(prompt, max_tokens)
    raise ServiceUnavailableError("No LLM backend configured (set OPENAI_API_KEY or HF_API_KEY)")


async def chat_with_tools_stream(
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    max_tokens: int = 512,
    model: str | None = None,
) -> AsyncIterator[tuple]:
    """
    Call OpenAI chat with tools and stream the response. Yields:
    - ('content_delta', str) for each token of text;
    - ('content_done', str) with the full text when the model answered without tools;
    - ('tool_calls', list[dict], content_str) when the model called tools (content_str may be empty).
    """
    if not OPENAI_API_KEY:
        raise ServiceUnavailableError("Tool calling requires OPENAI_API_KEY")
    client = _openai_client()
    stream = await client.chat.completions.create(
        model=model or AGENT_LLM_MODEL,
        messages=messages,
        tools=tools,
        max_tokens=max_tokens,
        stream=True,
    )
    content_parts: list[str] = []
    tool_calls_accum: dict[int, dict[str, Any]] = {}
    async for chunk in stream:
        if not chunk.choices:
            continue
        d = chunk.choices[0].delta
        if getattr(d, "content", None):
            content_parts.append(d.content)
            yield ("content_delta", d.content)
        if getattr(d, "tool_calls", None):
            for tc in d.tool_calls:
                idx = getattr(tc, "index", 0)
                if idx not in tool_calls_accum:
                    tool_calls_accum[idx] = {"id": "", "name": "", "arguments": ""}
                if getattr(tc, "id", None):
                    tool_calls_accum[idx]["id"] = tc.id
                if getattr(tc, "function", None):
                    if getattr(tc.function, "name", None):
                        tool_calls_accum[idx]["name"] = tc.function.name
                    if getattr(tc.function, "arguments", None):
                        tool_calls_accum[idx]["arguments"] += tc.function.arguments
    full_content = "".join(content_parts)
    if tool_calls_accum:
        tool_calls_list = [tool_calls_accum[i] for i in sorted(tool_calls_accum)]
        logger.info("[llm:chat_with_tools_stream] OUT tool_calls=%s", [x["name"] for x in tool_calls_list])
        yield ("tool_calls", tool_calls_list, full_content)
    else:
        logger.info("[llm:chat_with_tools_stream] OUT content_done len=%d", len(full_content))
        yield ("content_done", full_content)


def parse_tool_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode a tool call's JSON argument string. Raises ValueError when it is not a JSON object."""
    if isinstance(raw, dict):
        return raw
    args = json.loads(raw or "{}")
    if not isinstance(args, dict):
        raise ValueError("tool arguments must be a JSON object")
    return args
