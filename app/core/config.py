"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Server
HOST: str = os.getenv("HOST", "0.0.0.0").strip() or "0.0.0.0"
PORT: int = int(os.getenv("PORT", "9997"))

# OpenAI-compatible chat endpoint (OpenAI, Ollama /v1, watsonx gateways, ...)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "").strip()

# Models per role. Reminder stages default to a small local-style model.
AGENT_LLM_MODEL: str = os.getenv("AGENT_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
BOOKING_LLM_MODEL: str = os.getenv("BOOKING_LLM_MODEL", AGENT_LLM_MODEL).strip() or AGENT_LLM_MODEL
REMINDER_LLM_MODEL: str = os.getenv("REMINDER_LLM_MODEL", AGENT_LLM_MODEL).strip() or AGENT_LLM_MODEL
SQL_LLM_MODEL: str = os.getenv("SQL_LLM_MODEL", REMINDER_LLM_MODEL).strip() or REMINDER_LLM_MODEL

# Hugging Face chat (fallback for plain completions when OPENAI_API_KEY is not set)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)

# API timeouts (seconds)
LLM_API_TIMEOUT: float = 60.0
TOOLS_HTTP_TIMEOUT: float = 15.0

# Agent execution limits
AGENT_MAX_RETRIES_PER_STEP: int = 3
AGENT_TOTAL_MAX_RETRIES: int = 10
AGENT_MAX_ITERATIONS: int = 20
AGENT_MAX_TOKENS: int = 1024

# Conversation memory budget (estimated tokens, ~4 chars each)
MEMORY_MAX_TOKENS: int = int(os.getenv("MEMORY_MAX_TOKENS", "8000"))

# SSE framing
STREAM_MODEL_LABEL: str = os.getenv("STREAM_MODEL_LABEL", "crewai-example").strip() or "crewai-example"
THREAD_ID_HEADER: str = "x-ibm-thread-id"

# Flight pricing backend; path segments are appended by the lookup tool
FLIGHT_COST_API_URL: str = (
    os.getenv(
        "FLIGHT_COST_API_URL",
        "https://backend-lm-agent-lm-agent.pubfed4-ocp-7e584e106e8632fde4ff5d99d5f27ba6-0000"
        ".us-south.containers.appdomain.cloud/cost",
    ).strip().rstrip("/")
)
FLIGHT_CURRENCY: str = "USD"

# Reminder store
REMINDER_DB_PATH: str = os.getenv("REMINDER_DB_PATH", "reminder.db").strip() or "reminder.db"
MAX_REMINDERS: int = 10
# The agent registers FlightCostLookup, FlightBooking and Calculator; ReminderTool is opt-in.
ENABLE_REMINDER_TOOL: bool = os.getenv("ENABLE_REMINDER_TOOL", "false").strip().lower() in ("1", "true", "yes")
