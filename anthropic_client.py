"""Thin async wrapper around the Anthropic Messages API."""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic

LOGGER = logging.getLogger(__name__)


async def claude_chat(
    messages: list[dict[str, str]],
    temperature: float,
    max_tokens: int = 256,
    timeout: float | None = None,
) -> str:
    """Call the Claude API and return the assistant reply as a string.

    Args:
        messages: List of message dicts with "role" and "content" keys.
                  A "system" role message is extracted and passed via the
                  Anthropic API's dedicated system= parameter.
        temperature: Sampling temperature for the reply.
        max_tokens: Hard cap on output tokens (a topic array is short).
        timeout: Optional request timeout in seconds.
    """
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError("ANTHROPIC_API_KEY environment variable is required")

    claude_model = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5")
    client_kwargs: dict[str, Any] = {"api_key": api_key}
    if timeout is not None:
        client_kwargs["timeout"] = timeout

    system: str | None = None
    filtered: list[dict[str, Any]] = []
    for msg in messages:
        if msg["role"] == "system":
            system = msg["content"]
        else:
            filtered.append({"role": msg["role"], "content": msg["content"]})

    kwargs: dict[str, Any] = {
        "model": claude_model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": filtered,
    }
    if system:
        kwargs["system"] = system

    LOGGER.debug("Calling Claude model=%s max_tokens=%s", claude_model, max_tokens)
    async with anthropic.AsyncAnthropic(**client_kwargs) as client:
        response = await client.messages.create(**kwargs)
    return response.content[0].text
