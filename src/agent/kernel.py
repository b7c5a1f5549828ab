from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

import structlog

from src.agent.context import AgentContext
from src.agent.result import AgentResult
from src.infra.errors import AgentUnresolvedError
from src.tools.base import AgentTool

logger = structlog.get_logger()


class AgentKernel:
    """Ordered, short-circuiting dispatcher over a tool list.

    Flow per run: for each tool in construction order → stop if the context
    holds a result → supports()? → invoke(). No result after the last tool
    → AgentUnresolvedError.

    Exceptions raised by a tool's invoke() propagate unchanged; the facade
    is the single place where they are mapped to error results.
    """

    def __init__(self, tools: Sequence[AgentTool]) -> None:
        self._tools: tuple[AgentTool, ...] = tuple(tools)
        duplicates = [name for name, n in Counter(self.tool_names()).items() if n > 1]
        if duplicates:
            logger.warning("kernel_duplicate_tool_names", tool_names=duplicates)
        if not self._tools:
            logger.warning("kernel_without_tools")

    @property
    def tools(self) -> tuple[AgentTool, ...]:
        return self._tools

    def tool_names(self) -> list[str]:
        return [tool.name for tool in self._tools]

    async def run(self, context: AgentContext) -> AgentResult:
        """Walk the tool list once and return the single terminal result."""
        for position, tool in enumerate(self._tools):
            if context.has_result():
                break
            if not tool.supports(context):
                continue
            logger.debug("kernel_tool_invoked", tool_name=tool.name, position=position)
            await tool.invoke(context)

        result = context.result
        if result is None:
            logger.error(
                "kernel_unresolved",
                tool_names=self.tool_names(),
                intent_kind=context.intent_kind,
            )
            raise AgentUnresolvedError(
                f"No tool produced a result (tools: {', '.join(self.tool_names()) or 'none'})"
            )

        logger.info(
            "kernel_resolved",
            result_type=result.kind.value,
            tool_name=result.metadata.get("tool"),
        )
        return result
