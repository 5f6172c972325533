"""LLM client for the Anthropic Messages API."""

import json
import logging

import httpx
from sovern.config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_BASE_URL,
    ANTHROPIC_VERSION,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT,
    MODEL_FAST,
    MODEL_SYNTHESIS,
)

logger = logging.getLogger(__name__)

MESSAGES_URL = f"{ANTHROPIC_BASE_URL.rstrip('/')}/v1/messages"


def _headers() -> dict[str, str]:
    return {
        "x-api-key": ANTHROPIC_API_KEY,
        "anthropic-version": ANTHROPIC_VERSION,
        "content-type": "application/json",
    }


def _reply_text(data: dict) -> str:
    return "".join(
        block["text"] for block in data.get("content", []) if block.get("type") == "text"
    )


async def call_llm(
    system: str,
    user_message: str,
    model: str | None = None,
    max_tokens: int = LLM_MAX_TOKENS,
) -> str:
    """Send one system + user turn and return the reply text."""
    payload = {
        "model": model or MODEL_FAST,
        "max_tokens": max_tokens,
        "system": system,
        "messages": [{"role": "user", "content": user_message}],
    }
    async with httpx.AsyncClient(timeout=LLM_TIMEOUT) as client:
        resp = await client.post(MESSAGES_URL, headers=_headers(), json=payload)
        resp.raise_for_status()
        data = resp.json()

    logger.debug("LLM reply from %s: %s", payload["model"], data.get("usage"))
    return _reply_text(data)


def parse_json_reply(text: str) -> dict | list:
    """Parse a model reply as JSON, tolerating a markdown code fence around it."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    return json.loads(text)


async def call_llm_json(
    system: str,
    user_message: str,
    model: str | None = None,
) -> dict | list:
    text = await call_llm(system, user_message, model=model or MODEL_SYNTHESIS)
    return parse_json_reply(text)
