from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

import structlog

from src.agent.context import HistoryTurn, Intent, TenantRef
from src.agent.model_client import ModelClient
from src.infra.errors import LLMError

logger = structlog.get_logger()

ACTION_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "create": (re.compile(r"\b(?:create|add|new|make)\s+(?:a\s+)?(?:new\s+)?task\b", re.I),),
    "update": (
        re.compile(r"\b(?:update|change|modify|edit|set)\b", re.I),
        re.compile(r"\b(?:move|transfer|shift)\s+(?:task|#?\d+)\b", re.I),
    ),
    "delete": (
        re.compile(r"\b(?:delete|remove|destroy|purge|clear|erase|drop)\b", re.I),
    ),
    "assign": (re.compile(r"\b(?:assign|delegate|allocate)\b", re.I),),
}

QUESTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?:what|which|who|where|when|how|why|is|are|do|does|can)\b", re.I),
    re.compile(r"\?$"),
    re.compile(r"\b(?:show|list|display|get|find|tell)\s+(?:me\s+)?", re.I),
    re.compile(r"\b(?:how\s+many|count|total|number\s+of)\b", re.I),
    re.compile(r"\b(?:status|state|progress|info|details?)\s+(?:of|about|for)\b", re.I),
)

_STRONG_ACTION_VERB = re.compile(
    r"\b(?:create|add|delete|remove|update|change|move|assign|set|mark|make)\b", re.I
)
_LIKELY_QUESTION = re.compile(
    r"\b(?:how many|what is|who is|members|overview|summary|report|assigned to|belong|their|they)\b",
    re.I,
)
_FOLLOW_UP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?:and|also|what about|how about)\b", re.I),
    re.compile(r"^(?:assigned|belong|owned|created) (?:to|by)\b", re.I),
    re.compile(r"^(?:who|whom|whose|their|they|them|it|its|that|those)\b", re.I),
    re.compile(r"^(?:status|priority|due|deadline)\b", re.I),
)
_TASK_REF = re.compile(r"#(\d+)")
_TASK_COUNT = re.compile(r"(\d+)\s+tasks?\b", re.I)
_TASK_WORD = re.compile(r"\btasks?\b", re.I)

ROUTER_SYSTEM_PROMPT = """\
You are a routing and parsing controller for a project management assistant.

Classify the user's last message as either:
- "question": the user is asking for information (including short follow-ups
  such as "assigned to who?" or "their status?" that refer to earlier turns)
- "command": the user wants to change state (create, update, delete, assign tasks)

Return a single JSON object with ONLY these keys:
{
  "kind": "question" | "command",
  "question": "<rephrased, self-contained question; questions only>",
  "plan": {"type": "...", "selector": {}, "payload": {}, "changes": {},
           "filters": {}, "updates": {}, "assignee": "..."}
}

Statuses: todo, inprogress, review, done. Priorities: low, medium, high, urgent.
Map stages: first->todo, second->inprogress, third->review, fourth->done.
If a person is mentioned ("Alice's tasks"), set filters.assigned_to_hint."""


def _recent_user_turns(history: Sequence[HistoryTurn], window: int = 4) -> list[HistoryTurn]:
    return [turn for turn in history[-window:] if turn.role == "user"]


def extract_recent_topic(history: Sequence[HistoryTurn]) -> str | None:
    """Return a short phrase naming what the user was just discussing."""
    for turn in reversed(_recent_user_turns(history)):
        content = turn.content
        lowered = content.lower()
        if "tasks" in lowered:
            match = _TASK_COUNT.search(content)
            return f"{match.group(1)} tasks" if match else "tasks in the project"
        match = _TASK_REF.search(content)
        if match:
            return f"task #{match.group(1)}"
        if "project" in lowered:
            return "the project"
    return None


def enhance_follow_up_question(message: str, history: Sequence[HistoryTurn]) -> str:
    """Turn a short follow-up ("their status?") into a self-contained question."""
    lowered = message.strip().lower()

    topic = ""
    for turn in _recent_user_turns(history):
        if _TASK_WORD.search(turn.content):
            topic = "tasks"
            break
        match = _TASK_REF.search(turn.content)
        if match:
            topic = f"task #{match.group(1)}"
            break

    if "assigned" in lowered or "who" in lowered:
        return f"Who are the {topic} assigned to?" if topic else "Who are the tasks assigned to?"
    if "status" in lowered:
        return f"What is the status of {topic}?" if topic else "What is the status of the tasks?"
    if ("their" in lowered or "they" in lowered) and topic:
        return f"Tell me about {topic}"
    return message


def is_follow_up_question(message: str) -> bool:
    lowered = message.strip().lower()
    if any(pattern.search(lowered) for pattern in _FOLLOW_UP_PATTERNS):
        return True
    # Very short messages without a task reference are usually follow-ups
    return len(lowered) < 25 and "#" not in lowered


def classify_heuristic(message: str) -> str:
    """Rule-based classification into "question" or "command"."""
    lowered = message.strip().lower()
    strong_action = bool(_STRONG_ACTION_VERB.search(lowered))

    if not strong_action and any(p.search(lowered) for p in QUESTION_PATTERNS):
        return "question"

    for patterns in ACTION_PATTERNS.values():
        if any(p.search(lowered) for p in patterns):
            return "command"

    if is_follow_up_question(message):
        return "question"

    return "question" if _LIKELY_QUESTION.search(lowered) else "command"


class IntentClassifierService:
    """Classifies a message as a question or a command.

    With a model client, an LLM routing call is tried first (it also
    rephrases follow-up questions and proposes a seed command plan). Any LLM
    failure or an empty kind falls back to the rule-based classifier.
    """

    def __init__(
        self,
        model_client: ModelClient | None = None,
        *,
        model: str = "gpt-4o-mini",
        history_tail: int = 15,
        temperature: float = 0.1,
    ) -> None:
        self._model_client = model_client
        self._model = model
        self._history_tail = history_tail
        self._temperature = temperature

    async def classify(
        self, message: str, history: Sequence[HistoryTurn], tenant: TenantRef
    ) -> Intent:
        if self._model_client is not None:
            try:
                intent = await self._llm_route(self._model_client, message, history)
            except LLMError:
                logger.exception("intent_llm_route_failed", tenant_id=tenant.id)
            else:
                if intent is not None:
                    return intent

        kind = classify_heuristic(message)
        logger.info("intent_classified", tenant_id=tenant.id, kind=kind, source="heuristic")
        return Intent(kind=kind)

    async def _llm_route(
        self, client: ModelClient, message: str, history: Sequence[HistoryTurn]
    ) -> Intent | None:
        messages: list[dict[str, Any]] = [{"role": "system", "content": ROUTER_SYSTEM_PROMPT}]
        for turn in history[-self._history_tail:]:
            if turn.role in ("user", "assistant") and turn.content:
                messages.append(turn.to_dict())

        topic = extract_recent_topic(history)
        if topic:
            messages.append(
                {"role": "system", "content": f"Recent context: user was just discussing {topic}"}
            )
        messages.append({"role": "user", "content": message})

        raw = await client.chat_json(
            messages, self._model, temperature=self._temperature
        )
        kind = str(raw.get("kind") or "").strip().lower()
        if not kind:
            return None

        question = raw.get("question")
        question = question.strip() if isinstance(question, str) else None
        if kind == "question" and not question:
            question = enhance_follow_up_question(message, history)

        plan = raw.get("plan")
        logger.info(
            "intent_classified",
            kind=kind,
            source="llm",
            rephrased=question,
            recent_topic=topic,
        )
        return Intent(
            kind=kind,
            question=question or None,
            plan=dict(plan) if isinstance(plan, dict) else {},
            raw=raw,
        )
