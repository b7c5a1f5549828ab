"""Tests for AgentResult constructors and the wire projection."""

from __future__ import annotations

import dataclasses

import pytest

from src.agent.result import AgentResult, ResultKind


class TestInformation:
    def test_plain_message(self) -> None:
        result = AgentResult.information("All good")
        assert result.kind is ResultKind.information
        assert result.requires_confirmation is False
        assert result.payload is None
        assert result.ui is None
        assert result.to_dict() == {
            "type": "information",
            "message": "All good",
            "requires_confirmation": False,
        }

    def test_data_adds_default_snapshot_hint(self) -> None:
        result = AgentResult.information("3 tasks", data={"count": 3})
        assert result.to_dict() == {
            "type": "information",
            "message": "3 tasks",
            "requires_confirmation": False,
            "data": {"count": 3},
            "ui": {"show_snapshot": True},
        }

    def test_explicit_ui_hint_wins(self) -> None:
        result = AgentResult.information("x", data={"a": 1}, ui={"chart": "bar"})
        assert result.ui == {"chart": "bar"}

    def test_empty_data_is_omitted(self) -> None:
        wire = AgentResult.information("x", data={}).to_dict()
        assert "data" not in wire
        assert "ui" not in wire

    def test_meta_is_carried(self) -> None:
        wire = AgentResult.information("x", meta={"tool": "qa"}).to_dict()
        assert wire["meta"] == {"tool": "qa"}

    def test_blank_message_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            AgentResult.information("   ")


class TestCommandPreview:
    def test_requires_confirmation_by_default(self) -> None:
        plan = {"type": "task_update", "selector": {"id": 42}, "changes": {"status": "done"}}
        result = AgentResult.command_preview("Move #42 to Done", plan)
        wire = result.to_dict()
        assert wire["type"] == "command"
        assert wire["requires_confirmation"] is True
        assert wire["command_data"] == plan
        assert "data" not in wire

    def test_empty_command_data_is_still_emitted(self) -> None:
        wire = AgentResult.command_preview("Preview", {}).to_dict()
        assert wire["command_data"] == {}

    def test_none_command_data_rejected(self) -> None:
        with pytest.raises(ValueError, match="command_data"):
            AgentResult.command_preview("Preview", None)  # type: ignore[arg-type]

    def test_payload_is_copied(self) -> None:
        plan = {"type": "create_task"}
        result = AgentResult.command_preview("Preview", plan)
        plan["type"] = "mutated"
        assert result.payload == {"type": "create_task"}


class TestError:
    def test_error_shape(self) -> None:
        result = AgentResult.error("Nope")
        assert result.is_error
        assert result.to_dict() == {
            "type": "error",
            "message": "Nope",
            "requires_confirmation": False,
        }

    def test_information_is_not_error(self) -> None:
        assert not AgentResult.information("ok").is_error


class TestImmutability:
    def test_frozen(self) -> None:
        result = AgentResult.information("ok")
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.message = "changed"  # type: ignore[misc]

    def test_kind_values_are_wire_types(self) -> None:
        assert [k.value for k in ResultKind] == ["information", "command", "error"]
