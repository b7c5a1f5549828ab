from __future__ import annotations

from typing import TYPE_CHECKING

from src.tools.builtins.ai_assistant import AIAssistantTool
from src.tools.builtins.command_planning import CommandPlanningTool
from src.tools.builtins.fallback_help import FallbackHelpTool
from src.tools.builtins.intent_analysis import IntentAnalysisTool
from src.tools.builtins.question_answer import QuestionAnswerTool

if TYPE_CHECKING:
    from src.services.complexity import ComplexityHeuristic
    from src.services.contracts import (
        AssistantChat,
        CommandPlanner,
        HelpProvider,
        IntentClassifier,
        QuestionAnswerer,
    )
    from src.tools.base import AgentTool


def build_default_tools(
    classifier: IntentClassifier,
    qa: QuestionAnswerer,
    planner: CommandPlanner,
    help_provider: HelpProvider,
    *,
    assistant: AssistantChat | None = None,
    complexity: ComplexityHeuristic | None = None,
) -> list[AgentTool]:
    """Return the built-in tools in kernel order.

    AIAssistantTool is included only when an assistant is available.
    FallbackHelpTool is always last.
    """
    tools: list[AgentTool] = [
        IntentAnalysisTool(classifier),
        QuestionAnswerTool(qa),
        CommandPlanningTool(planner),
    ]
    if assistant is not None:
        tools.append(AIAssistantTool(assistant, complexity))
    tools.append(FallbackHelpTool(help_provider))
    return tools
