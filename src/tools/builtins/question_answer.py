from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.agent.result import AgentResult
from src.tools.base import AgentTool

if TYPE_CHECKING:
    from src.agent.context import AgentContext
    from src.services.contracts import QuestionAnswerer

logger = structlog.get_logger()


class QuestionAnswerTool(AgentTool):
    """Answers messages classified as questions. A blank answer declines."""

    def __init__(self, qa: QuestionAnswerer) -> None:
        self._qa = qa

    @property
    def name(self) -> str:
        return "question-answering"

    def supports(self, context: AgentContext) -> bool:
        return context.intent_kind == "question" and not context.has_result()

    async def invoke(self, context: AgentContext) -> None:
        intent = context.intent
        rephrased = (intent.question if intent is not None else None) or context.message

        answer = await self._qa.answer(
            context.tenant, context.message, context.history, rephrased
        )
        if not answer or not answer.strip():
            context.add_debug_note("question answering declined", {"rephrased": rephrased})
            logger.info("qa_tool_declined", tenant_id=context.tenant.id)
            return

        context.set_result(
            AgentResult.information(
                answer,
                meta={"intent": "question", "tool": self.name, "rephrased": rephrased},
            )
        )
