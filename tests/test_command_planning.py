"""Tests for CommandPlanningService: normalization, rules, validation, previews."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.agent.context import TenantRef
from src.agent.model_client import ModelClient
from src.infra.errors import LLMError
from src.services.command_planning import (
    CommandPlanningService,
    compile_rule_plan,
    normalize_plan,
    normalize_type,
    render_preview,
    resolve_priority,
    resolve_status,
    validate_plan,
)

TENANT = TenantRef(id="p1")


# ---------------------------------------------------------------------------
# Token normalization
# ---------------------------------------------------------------------------


class TestNormalization:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("createTask", "create_task"),
            ("move-task", "task_update"),
            ("DELETE", "task_delete"),
            ("mass_update", "bulk_update"),
            ("assignAll", "bulk_assign"),
            ("deleteAll", "bulk_delete_all"),
            ("task_update", "task_update"),
            ("", None),
            (None, None),
        ],
    )
    def test_type_aliases(self, raw, expected) -> None:
        assert normalize_type(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("In Progress", "inprogress"),
            ("to do", "todo"),
            ("completed", "done"),
            ("third", "review"),
            ("done", "done"),
            ("someday", None),
        ],
    )
    def test_status_tokens(self, raw, expected) -> None:
        assert resolve_status(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("P0", "urgent"), ("p2", "medium"), ("critical", "urgent"), ("High", "high"), ("x", None)],
    )
    def test_priority_tokens(self, raw, expected) -> None:
        assert resolve_priority(raw) == expected

    def test_normalize_plan_drops_unknown_tokens(self) -> None:
        plan = normalize_plan({
            "type": "updateTask",
            "selector": {"id": 3},
            "changes": {"status": "finished", "priority": "whenever"},
        })
        assert plan == {
            "type": "task_update",
            "selector": {"id": 3},
            "changes": {"status": "done"},
        }

    def test_normalize_plan_does_not_mutate_input(self) -> None:
        seed = {"type": "movetask", "changes": {"status": "completed"}}
        normalize_plan(seed)
        assert seed["changes"] == {"status": "completed"}

    def test_normalize_plan_drops_non_mapping_sections(self) -> None:
        plan = normalize_plan({"type": "task_update", "selector": 42, "changes": "done"})
        assert plan == {"type": "task_update"}


# ---------------------------------------------------------------------------
# Validation and previews
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize(
        ("plan", "reason"),
        [
            ({}, "I couldn't understand that command"),
            ({"type": "launch_rocket"}, "Unsupported command type."),
            ({"type": "task_delete"}, "A specific task ID"),
            ({"type": "task_update", "selector": {"id": "abc"}, "changes": {"a": 1}}, "task ID"),
            ({"type": "task_update", "selector": {"id": 4}}, "what to change"),
            ({"type": "bulk_update", "updates": {"status": "done"}}, "which tasks"),
            ({"type": "bulk_update", "filters": {"all": True}}, "what to update"),
            ({"type": "bulk_assign", "filters": {"all": True}}, "who to assign"),
            ({"type": "create_task", "payload": {"title": "  "}}, "A title is required"),
            ({"type": "create_task", "payload": "Write docs"}, "A title is required"),
            ({"type": "task_delete", "selector": 42}, "task ID"),
            ({"type": "bulk_update", "filters": "all", "updates": {"status": "done"}}, "which tasks"),
        ],
    )
    def test_invalid(self, plan, reason) -> None:
        message = validate_plan(plan)
        assert message is not None
        assert reason in message

    @pytest.mark.parametrize(
        "plan",
        [
            {"type": "create_task", "payload": {"title": "Fix login"}},
            {"type": "task_delete", "selector": {"id": 9}},
            {"type": "bulk_delete_overdue"},
            {"type": "bulk_delete_all"},
        ],
    )
    def test_valid(self, plan) -> None:
        assert validate_plan(plan) is None


class TestPreview:
    def test_create(self) -> None:
        preview = render_preview({"type": "create_task", "payload": {"title": "Fix login"}})
        assert preview == '✅ Create a new task "Fix login" in "To Do".'

    def test_delete(self) -> None:
        assert render_preview({"type": "task_delete", "selector": {"id": 7}}) == (
            "🗑️ Permanently delete task #7."
        )

    def test_update(self) -> None:
        preview = render_preview({
            "type": "task_update",
            "selector": {"id": 42},
            "changes": {"status": "done", "priority": "high"},
        })
        assert preview == '✏️ On task #42, set status to "Done", set priority to high.'

    def test_bulk_scope(self) -> None:
        preview = render_preview({
            "type": "bulk_update",
            "filters": {"status": "review", "overdue": True},
            "updates": {"status": "done"},
        })
        assert preview.startswith("⚡ This will update tasks")
        assert '(in "Review" and that are overdue)' in preview

    def test_bulk_all(self) -> None:
        preview = render_preview({"type": "bulk_assign", "filters": {"all": True}, "assignee": "Sam"})
        assert preview == '⚡ This will assign tasks on ALL tasks to "Sam".'

    def test_non_mapping_sections_render_as_unknown(self) -> None:
        assert render_preview({"type": "task_delete", "selector": 42}) == (
            "🗑️ Permanently delete task #unknown."
        )
        assert render_preview({"type": "create_task", "payload": "Write docs"}) == (
            '✅ Create a new task "Untitled" in "To Do".'
        )


# ---------------------------------------------------------------------------
# Rule-based compilation
# ---------------------------------------------------------------------------


class TestRulePlans:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ('Create task "Fix login bug"', {"type": "create_task", "payload": {"title": "Fix login bug"}}),
            ("Delete task #42", {"type": "task_delete", "selector": {"id": 42}}),
            ("Delete all overdue tasks", {"type": "bulk_delete_overdue"}),
            ("Delete all tasks", {"type": "bulk_delete_all"}),
            ("Delete urgent tasks", {"type": "bulk_delete", "filters": {"priority": "urgent"}}),
            (
                "Move #42 to in progress please",
                {"type": "task_update", "selector": {"id": 42}, "changes": {"status": "inprogress"}},
            ),
            (
                "Set priority of task 12 to P1",
                {"type": "task_update", "selector": {"id": 12}, "changes": {"priority": "high"}},
            ),
            (
                "Assign #42 to Alex",
                {"type": "task_update", "selector": {"id": 42}, "changes": {"assignee_hint": "Alex"}},
            ),
            (
                "Move tasks in Review to Done",
                {"type": "bulk_update", "filters": {"status": "review"}, "updates": {"status": "done"}},
            ),
            (
                "Set all In Progress tasks to Review",
                {
                    "type": "bulk_update",
                    "filters": {"status": "inprogress"},
                    "updates": {"status": "review"},
                },
            ),
            (
                "Assign unassigned tasks to Sam",
                {"type": "bulk_assign", "filters": {"unassigned": True}, "assignee": "Sam"},
            ),
        ],
    )
    def test_rules(self, message, expected) -> None:
        assert compile_rule_plan(message) == expected

    def test_unmatched(self) -> None:
        assert compile_rule_plan("do the thing") == {}

    def test_p1_is_not_a_task_id(self) -> None:
        assert compile_rule_plan("Set priority to p1") != {
            "type": "task_update",
            "selector": {"id": 1},
            "changes": {"priority": "high"},
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def _client(reply: dict | Exception) -> MagicMock:
    client = MagicMock(spec=ModelClient)
    if isinstance(reply, Exception):
        client.chat_json = AsyncMock(side_effect=reply)
    else:
        client.chat_json = AsyncMock(return_value=reply)
    return client


class TestService:
    @pytest.mark.asyncio()
    async def test_valid_seed_is_used(self) -> None:
        seed = {"type": "movetask", "selector": {"id": 5}, "changes": {"status": "completed"}}
        result = await CommandPlanningService().generate_plan(TENANT, "finish 5", [], seed)
        assert result.command_data == {
            "type": "task_update",
            "selector": {"id": 5},
            "changes": {"status": "done"},
        }
        assert result.preview_message == '✏️ On task #5, set status to "Done".'

    @pytest.mark.asyncio()
    async def test_invalid_seed_falls_back_to_rules(self) -> None:
        seed = {"type": "task_update", "changes": {"status": "done"}}
        result = await CommandPlanningService().generate_plan(TENANT, "Move #8 to done", [], seed)
        assert result.command_data["selector"] == {"id": 8}

    @pytest.mark.asyncio()
    async def test_llm_synthesis_when_rules_fail(self) -> None:
        client = _client({"type": "create_task", "payload": {"title": "Write docs"}})
        service = CommandPlanningService(client, model="m")
        result = await service.generate_plan(TENANT, "we need docs written", [], {})
        assert result.command_data == {"type": "create_task", "payload": {"title": "Write docs"}}
        client.chat_json.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_rules_win_over_llm(self) -> None:
        client = _client({"type": "bulk_delete_all"})
        service = CommandPlanningService(client)
        result = await service.generate_plan(TENANT, "Delete task #3", [], {})
        assert result.command_data == {"type": "task_delete", "selector": {"id": 3}}
        client.chat_json.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_llm_failure_yields_reason(self) -> None:
        service = CommandPlanningService(_client(LLMError("down")))
        result = await service.generate_plan(TENANT, "do the thing", [], {})
        assert not result.has_command
        assert "couldn't understand" in result.preview_message

    @pytest.mark.asyncio()
    async def test_invalid_plan_has_no_command_data(self) -> None:
        result = await CommandPlanningService().generate_plan(TENANT, "Delete", [], {})
        assert result.command_data is None
        assert "which tasks" in result.preview_message

    @pytest.mark.asyncio()
    async def test_seed_with_scalar_selector_falls_back_to_rules(self) -> None:
        seed = {"type": "task_update", "selector": 42, "changes": {"status": "done"}}
        result = await CommandPlanningService().generate_plan(TENANT, "Move #42 to done", [], seed)
        assert result.command_data == {
            "type": "task_update",
            "selector": {"id": 42},
            "changes": {"status": "done"},
        }

    @pytest.mark.asyncio()
    async def test_seed_with_string_payload_is_rejected(self) -> None:
        seed = {"type": "create_task", "payload": "Write docs"}
        result = await CommandPlanningService().generate_plan(TENANT, "we need docs", [], seed)
        assert not result.has_command
        assert "couldn't understand" in result.preview_message

    @pytest.mark.asyncio()
    async def test_malformed_llm_plan_is_rejected(self) -> None:
        service = CommandPlanningService(_client({"type": "task_delete", "selector": "17"}))
        result = await service.generate_plan(TENANT, "get rid of that one", [], {})
        assert not result.has_command
        assert "task ID" in result.preview_message

    @pytest.mark.asyncio()
    async def test_incomplete_rule_plan_reaches_llm(self) -> None:
        client = _client({"type": "task_delete", "selector": {"id": 17}})
        service = CommandPlanningService(client)
        result = await service.generate_plan(TENANT, "delete the login bug task", [], {})
        client.chat_json.assert_awaited_once()
        assert result.command_data == {"type": "task_delete", "selector": {"id": 17}}

    @pytest.mark.asyncio()
    async def test_incomplete_rule_plan_reason_when_llm_declines(self) -> None:
        client = _client({})
        service = CommandPlanningService(client)
        result = await service.generate_plan(TENANT, "delete the login bug task", [], {})
        client.chat_json.assert_awaited_once()
        assert result.command_data is None
        assert "which tasks" in result.preview_message
