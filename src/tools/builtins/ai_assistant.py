"""Escalation tool: hands complex requests to the AI assistant collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.agent.result import AgentResult
from src.infra.errors import LLMError
from src.services.complexity import ComplexityHeuristic
from src.tools.base import AgentTool

if TYPE_CHECKING:
    from src.agent.context import AgentContext
    from src.services.contracts import AssistantChat

logger = structlog.get_logger()

PROVENANCE_PREFIX = "🤖 **AI Assistant**: "


class AIAssistantTool(AgentTool):
    """Answers complex requests through the assistant, when enabled for the tenant.

    An empty reply or an LLMError is a decline: it is logged, recorded in the
    debug trace, and the run continues with later tools. Any other exception
    propagates to the facade.
    """

    def __init__(
        self, assistant: AssistantChat, complexity: ComplexityHeuristic | None = None
    ) -> None:
        self._assistant = assistant
        self._complexity = complexity or ComplexityHeuristic()

    @property
    def name(self) -> str:
        return "ai-assistant"

    def supports(self, context: AgentContext) -> bool:
        if context.has_result():
            return False
        if not self._assistant.is_enabled(context.tenant):
            return False
        return self._complexity.is_complex(context.message, context.intent_kind)

    async def invoke(self, context: AgentContext) -> None:
        tenant = context.tenant
        logger.info(
            "ai_assistant_processing",
            tenant_id=tenant.id,
            message_length=len(context.message),
            session_id=context.session_id,
        )
        try:
            reply = await self._assistant.chat(tenant, context.message, context.session_id)
        except LLMError as e:
            logger.exception("ai_assistant_failed", tenant_id=tenant.id, code=e.code)
            context.add_debug_note("ai assistant failed", {"code": e.code, "error": str(e)})
            return

        if not reply or not reply.strip():
            logger.warning("ai_assistant_declined", tenant_id=tenant.id)
            context.add_debug_note("ai assistant returned no reply")
            return

        context.set_result(
            AgentResult.information(PROVENANCE_PREFIX + reply.strip(), meta={"tool": self.name})
        )
