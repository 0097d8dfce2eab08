"""
Text completion — pluggable LLM capability used by the classifier and the
insight narratives.

Anything implementing `TextCompletion.complete(system_prompt, user_prompt)`
can be injected. `OpenAICompatibleCompletion` talks to any endpoint that
speaks the `/chat/completions` protocol (OpenAI, OpenRouter, vLLM, TGI's
OpenAI router …).

Every failure mode (timeout, connection error, non-2xx, unreadable body)
is raised as `TextCompletionError`; callers decide how to degrade.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from karma_engine.core.config import Settings, settings as default_settings
from karma_engine.core.errors import TextCompletionError

logger = logging.getLogger(__name__)


class TextCompletion(Protocol):
    def complete(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        *,
        json_response: bool = False,
        max_tokens: Optional[int] = None,
    ) -> str:
        ...


class OpenAICompatibleCompletion:
    """Synchronous chat-completions client with a bounded timeout."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 500,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    def complete(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        *,
        json_response: bool = False,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        payload: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if json_response:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException as exc:
            raise TextCompletionError(f"Completion request timed out after {self.timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise TextCompletionError(
                f"Completion endpoint returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TextCompletionError(f"Completion transport error: {exc}") from exc
        except ValueError as exc:
            raise TextCompletionError("Completion endpoint returned a non-JSON body") from exc

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise TextCompletionError("Completion response has no message content") from exc
        if not isinstance(content, str):
            raise TextCompletionError("Completion message content is not text")
        return content


def completion_from_settings(cfg: Settings = default_settings) -> Optional[TextCompletion]:
    """Build the configured client, or None when no API key is set."""
    if not cfg.llm_enabled:
        logger.warning("LLM API key not set; classification uses rule and heuristic tiers only.")
        return None
    return OpenAICompatibleCompletion(
        api_key=cfg.LLM_API_KEY,
        base_url=cfg.LLM_BASE_URL,
        model=cfg.LLM_MODEL,
        timeout=cfg.LLM_TIMEOUT_SECONDS,
        temperature=cfg.LLM_TEMPERATURE,
        max_tokens=cfg.LLM_MAX_TOKENS,
    )
