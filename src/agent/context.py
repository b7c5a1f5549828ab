from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from src.agent.result import AgentResult
from src.infra.errors import ResultAlreadySetError

logger = structlog.get_logger()

INTENT_KEY = "intent"
PLAN_RESULT_KEY = "plan_result"


@dataclass(frozen=True)
class TenantRef:
    """Opaque reference to the project (tenant) that owns the conversation."""

    id: str
    name: str = ""
    ai_enhancement_enabled: bool = True


@dataclass(frozen=True)
class HistoryTurn:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HistoryTurn:
        return cls(role=str(data.get("role", "user")), content=str(data.get("content") or ""))


@dataclass(frozen=True)
class Intent:
    """Classified intent of the current message.

    kind: "question", "command", or a collaborator-specific kind such as
    "analysis". question: rephrased, self-contained question (questions only).
    plan: seed plan proposed by the classifier (commands only).
    """

    kind: str
    question: str | None = None
    plan: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlanResult:
    preview_message: str
    command_data: dict[str, Any] | None = None

    @property
    def has_command(self) -> bool:
        return bool(self.command_data)


@dataclass(frozen=True)
class DebugNote:
    note: str
    context: dict[str, Any] = field(default_factory=dict)


class AgentContext:
    """Per-request carrier of inputs, scratch state and the terminal result.

    Owned by exactly one kernel run; never share an instance across
    concurrent requests. The inputs (tenant, message, session_id, history)
    are read-only after construction.
    """

    def __init__(
        self,
        tenant: TenantRef,
        message: str,
        session_id: str | None = None,
        history: Iterable[HistoryTurn | Mapping[str, Any]] = (),
    ) -> None:
        self._tenant = tenant
        self._message = message
        self._session_id = session_id
        self._history: tuple[HistoryTurn, ...] = tuple(
            turn if isinstance(turn, HistoryTurn) else HistoryTurn.from_mapping(turn)
            for turn in history
        )
        self._state: dict[str, Any] = {}
        self._result: AgentResult | None = None
        self._debug_notes: list[DebugNote] = []

    @property
    def tenant(self) -> TenantRef:
        return self._tenant

    @property
    def message(self) -> str:
        return self._message

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def history(self) -> tuple[HistoryTurn, ...]:
        return self._history

    # -- scratch state -------------------------------------------------

    def set_state(self, key: str, value: Any) -> None:
        """Write a scratch entry. Last write wins; no shape checking."""
        self._state[key] = value

    def get_state(self, key: str, default: Any = None) -> Any:
        return self._state.get(key, default)

    def has_state(self, key: str) -> bool:
        return key in self._state

    @property
    def intent(self) -> Intent | None:
        value = self._state.get(INTENT_KEY)
        return value if isinstance(value, Intent) else None

    def set_intent(self, intent: Intent) -> None:
        self.set_state(INTENT_KEY, intent)

    @property
    def intent_kind(self) -> str | None:
        intent = self.intent
        return intent.kind if intent is not None else None

    @property
    def plan_result(self) -> PlanResult | None:
        value = self._state.get(PLAN_RESULT_KEY)
        return value if isinstance(value, PlanResult) else None

    def set_plan_result(self, plan_result: PlanResult) -> None:
        self.set_state(PLAN_RESULT_KEY, plan_result)

    # -- terminal result -----------------------------------------------

    def set_result(self, result: AgentResult) -> None:
        """Store the terminal result. Raises ResultAlreadySetError on a second write."""
        if self._result is not None:
            logger.error(
                "context_result_overwrite_rejected",
                existing_kind=self._result.kind.value,
                rejected_kind=result.kind.value,
            )
            raise ResultAlreadySetError()
        self._result = result

    def has_result(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> AgentResult | None:
        return self._result

    # -- diagnostics ---------------------------------------------------

    def add_debug_note(self, note: str, context: Mapping[str, Any] | None = None) -> None:
        self._debug_notes.append(DebugNote(note=note, context=dict(context or {})))

    @property
    def debug_notes(self) -> tuple[DebugNote, ...]:
        return tuple(self._debug_notes)
