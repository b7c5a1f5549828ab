"""LLM access for the assistant collaborators.

Collaborators talk to a ModelClient; only OpenAICompatModelClient knows the
provider SDK. Every provider failure reaches callers as LLMError.
"""

from __future__ import annotations

import asyncio
import json
import random
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from src.infra.errors import LLMError

logger = structlog.get_logger()

Messages = list[dict[str, Any]]

TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(raw: str, *, context: str = "") -> dict[str, Any]:
    """Parse an LLM reply that should hold a single JSON object.

    Tolerates a surrounding markdown code fence. Raises LLMError otherwise.
    """
    text = _FENCE_RE.sub("", raw.strip())
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise LLMError(f"Invalid JSON from provider ({context}): {e}", code="LLM_BAD_JSON") from e
    if not isinstance(parsed, dict):
        raise LLMError(
            f"Expected JSON object from provider ({context}), got {type(parsed).__name__}",
            code="LLM_BAD_JSON",
        )
    return parsed


class ModelClient(ABC):
    """One completion primitive; plain-text and JSON helpers are built on it."""

    @abstractmethod
    async def complete(
        self,
        messages: Messages,
        model: str,
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        """Return the text of the first choice. Raises LLMError on provider failure."""

    async def chat(
        self, messages: Messages, model: str, temperature: float | None = None
    ) -> str:
        return await self.complete(messages, model, temperature=temperature)

    async def chat_json(
        self, messages: Messages, model: str, temperature: float | None = None
    ) -> dict[str, Any]:
        """Complete in JSON mode and return the parsed object."""
        raw = await self.complete(messages, model, temperature=temperature, json_mode=True)
        return parse_json_object(raw, context=model)


class OpenAICompatModelClient(ModelClient):
    """ModelClient for OpenAI and any endpoint speaking its chat completions API.

    Transient failures (connection, timeout, rate limit) are retried with
    jittered exponential backoff; SDK-level retries are disabled so the
    attempt budget lives in one place.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        timeout: float | None = None,
    ) -> None:
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            **({"timeout": timeout} if timeout is not None else {}),
        )
        self._attempts = max_retries + 1
        self._base_delay = base_delay

    def _backoff(self, attempt: int) -> float:
        return self._base_delay * (2 ** (attempt - 1)) + random.uniform(0, 0.5)

    async def _call(self, request: Callable[[], Awaitable[Any]], *, model: str) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await request()
            except TRANSIENT_ERRORS as e:
                if attempt >= self._attempts:
                    raise LLMError(
                        f"Provider unreachable after {attempt} attempt(s): {e}",
                        code="LLM_UNAVAILABLE",
                    ) from e
                delay = self._backoff(attempt)
                logger.warning(
                    "llm_transient_error",
                    model=model,
                    attempt=attempt,
                    attempts=self._attempts,
                    delay=round(delay, 2),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)
            except APIStatusError as e:
                raise LLMError(
                    f"Provider rejected request: {e.status_code} {e.message}",
                    code="LLM_REJECTED",
                ) from e

    async def complete(
        self,
        messages: Messages,
        model: str,
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        params: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            params["temperature"] = temperature
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        response = await self._call(
            lambda: self._client.chat.completions.create(**params), model=model
        )
        if not response.choices:
            raise LLMError(f"Provider returned no choices ({model})", code="LLM_EMPTY")
        content = response.choices[0].message.content or ""
        logger.debug(
            "llm_completed",
            model=model,
            message_count=len(messages),
            json_mode=json_mode,
            chars=len(content),
        )
        return content
