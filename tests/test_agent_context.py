"""Tests for AgentContext scratch state, result slot and debug trace."""

from __future__ import annotations

import pytest

from src.agent.context import (
    INTENT_KEY,
    AgentContext,
    HistoryTurn,
    Intent,
    PlanResult,
    TenantRef,
)
from src.agent.result import AgentResult
from src.infra.errors import ResultAlreadySetError


@pytest.fixture()
def ctx() -> AgentContext:
    return AgentContext(TenantRef(id="p1"), "hello", "s1")


class TestInputs:
    def test_inputs_exposed(self, ctx: AgentContext) -> None:
        assert ctx.tenant.id == "p1"
        assert ctx.message == "hello"
        assert ctx.session_id == "s1"
        assert ctx.history == ()

    def test_history_mappings_are_converted(self) -> None:
        ctx = AgentContext(
            TenantRef(id="p1"),
            "hi",
            history=[{"role": "user", "content": "a"}, HistoryTurn("assistant", "b")],
        )
        assert ctx.history == (HistoryTurn("user", "a"), HistoryTurn("assistant", "b"))

    def test_history_is_a_snapshot(self) -> None:
        source = [HistoryTurn("user", "a")]
        ctx = AgentContext(TenantRef(id="p1"), "hi", history=source)
        source.append(HistoryTurn("user", "b"))
        assert len(ctx.history) == 1


class TestScratchState:
    def test_missing_key_returns_default(self, ctx: AgentContext) -> None:
        assert ctx.get_state("nope") is None
        assert ctx.get_state("nope", 5) == 5
        assert not ctx.has_state("nope")

    def test_last_write_wins(self, ctx: AgentContext) -> None:
        ctx.set_state("k", 1)
        ctx.set_state("k", 2)
        assert ctx.get_state("k") == 2
        assert ctx.has_state("k")

    def test_typed_intent_accessor(self, ctx: AgentContext) -> None:
        assert ctx.intent is None
        assert ctx.intent_kind is None
        ctx.set_intent(Intent(kind="question", question="What?"))
        assert ctx.intent_kind == "question"
        assert ctx.get_state(INTENT_KEY).question == "What?"

    def test_foreign_value_under_intent_key_is_ignored(self, ctx: AgentContext) -> None:
        ctx.set_state(INTENT_KEY, {"kind": "question"})
        assert ctx.intent is None

    def test_plan_result_accessor(self, ctx: AgentContext) -> None:
        ctx.set_plan_result(PlanResult("preview", {"type": "create_task"}))
        assert ctx.plan_result is not None
        assert ctx.plan_result.has_command


class TestResultSlot:
    def test_empty_until_set(self, ctx: AgentContext) -> None:
        assert not ctx.has_result()
        assert ctx.result is None

    def test_set_once(self, ctx: AgentContext) -> None:
        result = AgentResult.information("done")
        ctx.set_result(result)
        assert ctx.has_result()
        assert ctx.result is result

    def test_second_write_fails_fast(self, ctx: AgentContext) -> None:
        first = AgentResult.information("first")
        ctx.set_result(first)
        with pytest.raises(ResultAlreadySetError) as exc_info:
            ctx.set_result(AgentResult.error("second"))
        assert exc_info.value.code == "RESULT_ALREADY_SET"
        assert ctx.result is first


class TestDebugNotes:
    def test_notes_append_in_order(self, ctx: AgentContext) -> None:
        ctx.add_debug_note("one")
        ctx.add_debug_note("two", {"k": "v"})
        notes = ctx.debug_notes
        assert [n.note for n in notes] == ["one", "two"]
        assert notes[0].context == {}
        assert notes[1].context == {"k": "v"}

    def test_notes_view_is_read_only(self, ctx: AgentContext) -> None:
        ctx.add_debug_note("one")
        assert isinstance(ctx.debug_notes, tuple)
