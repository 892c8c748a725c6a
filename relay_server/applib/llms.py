"""
Client for the external chat-completion service (OpenAI-compatible shape).

The call is blocking (requests); async callers run it in a worker thread.
Every failure mode is reported as CompletionError so the caller has one thing to catch.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import requests

from relay_server.applib.config import Settings, config


class CompletionError(Exception):
    """The completion service did not produce a usable reply."""


def build_messages(turns: Iterable[Dict[str, str]], system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
    """Request body `messages`: role/content pairs, system prompt first when configured."""
    messages: List[Dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for turn in turns:
        messages.append({"role": turn["role"], "content": turn["content"]})
    return messages


def _headers(api_key: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def request_completion(messages: List[Dict[str, str]], settings: Settings = config) -> str:
    """POST one completion request and return the reply text."""
    if not settings.ASSISTANT_API_KEY:
        raise CompletionError("ASSISTANT_API_KEY is not configured")

    body = {
        "model": settings.ASSISTANT_MODEL,
        "messages": messages,
        "temperature": settings.ASSISTANT_TEMPERATURE,
        "max_tokens": settings.ASSISTANT_MAX_TOKENS,
    }
    try:
        resp = requests.post(
            settings.ASSISTANT_API_URL,
            json=body,
            headers=_headers(settings.ASSISTANT_API_KEY),
            timeout=settings.ASSISTANT_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise CompletionError(f"completion request failed: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise CompletionError(f"completion service returned HTTP {resp.status_code}")

    try:
        data = resp.json()
        reply = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise CompletionError("malformed completion response") from e

    if not isinstance(reply, str) or not reply.strip():
        raise CompletionError("completion response has no text")
    return reply.strip()
