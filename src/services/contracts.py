"""Collaborator contracts consumed by the kernel tools and the facade.

Tools depend on these protocols only; concrete services live next to this
module and tests substitute fakes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from src.agent.context import HistoryTurn, Intent, PlanResult, TenantRef


class HistoryStore(Protocol):
    async def load_history(
        self, tenant: TenantRef, session_id: str | None
    ) -> list[HistoryTurn]: ...

    async def append(
        self, tenant: TenantRef, role: str, content: str, session_id: str | None
    ) -> None: ...


class IntentClassifier(Protocol):
    async def classify(
        self, message: str, history: Sequence[HistoryTurn], tenant: TenantRef
    ) -> Intent: ...


class QuestionAnswerer(Protocol):
    async def answer(
        self,
        tenant: TenantRef,
        message: str,
        history: Sequence[HistoryTurn],
        rephrased_question: str | None = None,
    ) -> str: ...


class CommandPlanner(Protocol):
    async def generate_plan(
        self,
        tenant: TenantRef,
        message: str,
        history: Sequence[HistoryTurn],
        seed: Mapping[str, Any],
    ) -> PlanResult: ...


class AssistantChat(Protocol):
    def is_enabled(self, tenant: TenantRef) -> bool: ...

    async def chat(
        self, tenant: TenantRef, message: str, session_id: str | None
    ) -> str | None: ...


class HelpProvider(Protocol):
    def provide_help(self, tenant: TenantRef) -> str | Mapping[str, Any]: ...
