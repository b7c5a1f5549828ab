from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from src.agent.result import AgentResult
from src.tools.base import AgentTool

if TYPE_CHECKING:
    from src.agent.context import AgentContext
    from src.services.contracts import HelpProvider

FALLBACK_MESSAGE = "I can help with questions about your project and with task commands."


class FallbackHelpTool(AgentTool):
    """Last-resort tool: always answers with usage help. Keep it last."""

    def __init__(self, help_provider: HelpProvider) -> None:
        self._help = help_provider

    @property
    def name(self) -> str:
        return "fallback-help"

    def supports(self, context: AgentContext) -> bool:
        return not context.has_result()

    async def invoke(self, context: AgentContext) -> None:
        help_content = self._help.provide_help(context.tenant)
        if isinstance(help_content, Mapping):
            message = str(help_content.get("message") or "")
        else:
            message = str(help_content or "")

        context.set_result(
            AgentResult.information(message.strip() or FALLBACK_MESSAGE, meta={"tool": self.name})
        )
