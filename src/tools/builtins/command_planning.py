from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.agent.result import AgentResult
from src.tools.base import AgentTool

if TYPE_CHECKING:
    from src.agent.context import AgentContext
    from src.services.contracts import CommandPlanner

logger = structlog.get_logger()

DEFAULT_PREVIEW = "I prepared a command for you. Please review it before confirming."
DEFAULT_NO_PLAN = "I couldn't understand that command. Please be more specific."


class CommandPlanningTool(AgentTool):
    """Plans commands and returns them as a preview awaiting confirmation.

    Plans are never executed here. A planner result without command data
    becomes an informational reply carrying the planner's explanation.
    """

    def __init__(self, planner: CommandPlanner) -> None:
        self._planner = planner

    @property
    def name(self) -> str:
        return "command-planning"

    def supports(self, context: AgentContext) -> bool:
        return context.intent_kind == "command" and not context.has_result()

    async def invoke(self, context: AgentContext) -> None:
        intent = context.intent
        seed = intent.plan if intent is not None else {}

        plan_result = await self._planner.generate_plan(
            context.tenant, context.message, context.history, seed
        )
        context.set_plan_result(plan_result)
        meta = {"intent": "command", "tool": self.name, "plan": plan_result.command_data}

        if plan_result.has_command:
            context.set_result(
                AgentResult.command_preview(
                    plan_result.preview_message.strip() or DEFAULT_PREVIEW,
                    plan_result.command_data,
                    requires_confirmation=True,
                    meta=meta,
                )
            )
            logger.info(
                "command_planned",
                tenant_id=context.tenant.id,
                plan_type=plan_result.command_data.get("type"),
            )
            return

        reason = plan_result.preview_message.strip() or DEFAULT_NO_PLAN
        context.add_debug_note("planner returned no command", {"preview": reason})
        context.set_result(AgentResult.information(reason, meta=meta))
