from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.agent.context import INTENT_KEY
from src.tools.base import AgentTool

if TYPE_CHECKING:
    from src.agent.context import AgentContext
    from src.services.contracts import IntentClassifier

logger = structlog.get_logger()


class IntentAnalysisTool(AgentTool):
    """Classifies the message and stores the Intent in scratch state.

    Never sets a result; later tools gate on the stored intent kind.
    """

    def __init__(self, classifier: IntentClassifier) -> None:
        self._classifier = classifier

    @property
    def name(self) -> str:
        return "intent-analysis"

    def supports(self, context: AgentContext) -> bool:
        return not context.has_state(INTENT_KEY)

    async def invoke(self, context: AgentContext) -> None:
        intent = await self._classifier.classify(
            context.message, context.history, context.tenant
        )
        context.set_intent(intent)
        context.add_debug_note(
            "intent classified",
            {"kind": intent.kind, "rephrased": intent.question},
        )
        logger.debug("intent_stored", tool_name=self.name, kind=intent.kind)
