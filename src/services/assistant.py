from __future__ import annotations

from collections import OrderedDict, deque
from typing import Any

import structlog

from src.agent.context import TenantRef
from src.agent.model_client import ModelClient

logger = structlog.get_logger()

ASSISTANT_SYSTEM_PROMPT = """\
You are an experienced project management advisor for the project "{project}".
Give concrete, prioritized advice: analysis, planning, risks and next steps.
Keep answers under 250 words and use short bullet lists where helpful."""


class AssistantService:
    """Escalation assistant for complex requests.

    Keeps a short per-session thread so follow-ups within a session see the
    previous exchange. At most max_sessions threads are kept; the least
    recently used one is dropped first. Provider failures surface as LLMError.
    """

    def __init__(
        self,
        model_client: ModelClient | None = None,
        *,
        model: str = "gpt-4o-mini",
        enabled: bool = True,
        temperature: float = 0.4,
        thread_turns: int = 10,
        max_sessions: int = 500,
    ) -> None:
        self._model_client = model_client
        self._model = model
        self._enabled = enabled
        self._temperature = temperature
        self._thread_turns = thread_turns
        self._max_sessions = max_sessions
        self._threads: OrderedDict[tuple[str, str], deque[dict[str, Any]]] = OrderedDict()

    def is_enabled(self, tenant: TenantRef) -> bool:
        return self._enabled and tenant.ai_enhancement_enabled and self._model_client is not None

    async def chat(self, tenant: TenantRef, message: str, session_id: str | None) -> str | None:
        if self._model_client is None:
            return None

        thread = self._thread_for(tenant, session_id)
        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": ASSISTANT_SYSTEM_PROMPT.format(project=tenant.name or tenant.id),
            },
            *(thread or ()),
            {"role": "user", "content": message},
        ]
        reply = (
            await self._model_client.chat(messages, self._model, temperature=self._temperature)
        ).strip()
        if not reply:
            logger.warning("assistant_empty_reply", tenant_id=tenant.id)
            return None

        if thread is not None:
            thread.append({"role": "user", "content": message})
            thread.append({"role": "assistant", "content": reply})
        logger.info("assistant_replied", tenant_id=tenant.id, reply_chars=len(reply))
        return reply

    def _thread_for(
        self, tenant: TenantRef, session_id: str | None
    ) -> deque[dict[str, Any]] | None:
        if session_id is None:
            return None
        key = (tenant.id, session_id)
        thread = self._threads.get(key)
        if thread is not None:
            self._threads.move_to_end(key)
            return thread
        thread = deque(maxlen=self._thread_turns * 2)
        self._threads[key] = thread
        while len(self._threads) > self._max_sessions:
            self._threads.popitem(last=False)
        return thread
