from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

import structlog

from src.agent.context import HistoryTurn, TenantRef
from src.agent.model_client import ModelClient
from src.infra.errors import LLMError

logger = structlog.get_logger()

_CODE_FENCE = re.compile(r"```[\s\S]*?```", re.MULTILINE)
_WHITESPACE = re.compile(r"\s+")
_CONTEXTUAL_WORDS = frozenset({"they", "them", "their", "those", "these", "it", "its", "that", "this"})
_CONTEXT_OPENERS = re.compile(r"^(?:who|whom|whose|assigned to|belong|responsible|owns)", re.I)
_ROLE_WORDS = re.compile(r"(?:owner|team|member)", re.I)
_FOLLOW_UP_OPENERS = re.compile(r"^(?:and|also|what about|how about)\b", re.I)
_TASK_REF = re.compile(r"#\d+")

QA_SYSTEM_PROMPT = """\
You are a helpful project assistant for the project "{project}".
Answer the user's question using the conversation so far. Be concise and
factual; if the conversation does not contain the information, say what is
missing instead of guessing. Do not output code blocks."""


def sanitize_answer(text: str, max_chars: int = 800) -> str:
    """Drop code fences, collapse whitespace and cap the length."""
    cleaned = _WHITESPACE.sub(" ", _CODE_FENCE.sub("", text)).strip()
    if len(cleaned) > max_chars:
        return cleaned[:max_chars] + "…"
    return cleaned


def requires_conversation_context(message: str, history: Sequence[HistoryTurn]) -> bool:
    """True when the question leans on earlier turns (pronouns, short follow-ups)."""
    lowered = message.strip().lower()
    words = set(re.findall(r"[a-z']+", lowered))

    if words & _CONTEXTUAL_WORDS and not _TASK_REF.search(lowered):
        return True
    if _CONTEXT_OPENERS.search(lowered) and not _ROLE_WORDS.search(lowered):
        return True
    if len(lowered) < 20 and history:
        return True
    return bool(_FOLLOW_UP_OPENERS.search(lowered))


class QuestionAnsweringService:
    """Answers project questions with the LLM, grounded in the conversation.

    Returns an empty string when it cannot answer (no model configured, the
    provider failed, or the model returned nothing); the caller then leaves
    the request to later tools.
    """

    def __init__(
        self,
        model_client: ModelClient | None = None,
        *,
        model: str = "gpt-4o-mini",
        history_tail: int = 15,
        max_answer_chars: int = 800,
        temperature: float = 0.2,
    ) -> None:
        self._model_client = model_client
        self._model = model
        self._history_tail = history_tail
        self._max_answer_chars = max_answer_chars
        self._temperature = temperature

    async def answer(
        self,
        tenant: TenantRef,
        message: str,
        history: Sequence[HistoryTurn],
        rephrased_question: str | None = None,
    ) -> str:
        if self._model_client is None:
            logger.info("qa_skipped_no_model", tenant_id=tenant.id)
            return ""

        needs_context = requires_conversation_context(message, history)
        tail = list(history[-self._history_tail:]) if needs_context else list(history[-4:])

        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": QA_SYSTEM_PROMPT.format(project=tenant.name or tenant.id),
            },
            *(turn.to_dict() for turn in tail if turn.role in ("user", "assistant")),
            {"role": "user", "content": message},
        ]
        if rephrased_question and rephrased_question != message:
            messages.append(
                {"role": "system", "content": f"Interpreted question: {rephrased_question}"}
            )

        try:
            raw = await self._model_client.chat(
                messages, self._model, temperature=self._temperature
            )
        except LLMError:
            logger.exception(
                "qa_llm_failed",
                tenant_id=tenant.id,
                needs_context=needs_context,
            )
            return ""

        answer = sanitize_answer(raw, self._max_answer_chars)
        logger.info(
            "qa_answered",
            tenant_id=tenant.id,
            needs_context=needs_context,
            answer_chars=len(answer),
        )
        return answer
