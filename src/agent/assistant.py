"""Project assistant facade: the single entry point for one chat message.

handle() screens the input, loads history, runs the kernel, maps kernel
failures to user-safe error results, and records the exchange. Everything
the caller sees is an AgentResult; no exception escapes handle().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.agent.context import AgentContext, HistoryTurn, TenantRef
from src.agent.kernel import AgentKernel
from src.agent.result import AgentResult
from src.infra.errors import AgentUnresolvedError
from src.infra.logging import bound_request
from src.services.assistant import AssistantService
from src.services.command_planning import CommandPlanningService
from src.services.complexity import ComplexityHeuristic
from src.services.help import StaticHelpProvider
from src.services.intent_classifier import IntentClassifierService
from src.services.question_answering import QuestionAnsweringService
from src.tools.builtins import build_default_tools

if TYPE_CHECKING:
    from src.agent.model_client import ModelClient
    from src.config.settings import Settings
    from src.services.contracts import HistoryStore

logger = structlog.get_logger()

EMPTY_MESSAGE_REPLY = "Please type a request."
SECRETS_REPLY = "I can't process content that looks like secrets."
UNRESOLVED_REPLY = "I was not able to figure out a helpful response. Please rephrase and try again."
UNEXPECTED_REPLY = "An unexpected error occurred. Please try again."

# matched as case-insensitive substrings so prefixed names like access_token= still hit
SECRET_NEEDLES = (
    "api_key",
    "api-key",
    "apikey",
    "secret=",
    "password=",
    "pwd=",
    "token=",
    "bearer ",
    "ghp_",
    "-----begin ",
    "private key",
    "aws_access_key_id",
    "aws_secret_access_key",
)


def looks_like_secrets(text: str) -> bool:
    lowered = text.lower()
    return any(needle in lowered for needle in SECRET_NEEDLES)


class ProjectAssistantAgent:
    """Conversational agent for one deployment; shared across requests."""

    def __init__(self, kernel: AgentKernel, history_store: HistoryStore) -> None:
        self._kernel = kernel
        self._history_store = history_store

    @property
    def kernel(self) -> AgentKernel:
        return self._kernel

    async def handle(
        self, tenant: TenantRef, message: str, session_id: str | None = None
    ) -> AgentResult:
        with bound_request(tenant_id=tenant.id, session_id=session_id):
            return await self._handle(tenant, message, session_id)

    async def _handle(
        self, tenant: TenantRef, message: str, session_id: str | None
    ) -> AgentResult:
        message = message.strip()
        if not message:
            return AgentResult.information(EMPTY_MESSAGE_REPLY)

        if looks_like_secrets(message):
            logger.warning("assistant_secrets_rejected", message_length=len(message))
            return AgentResult.error(SECRETS_REPLY)

        history = await self._load_history(tenant, session_id)
        context = AgentContext(tenant, message, session_id, history)

        try:
            result = await self._kernel.run(context)
        except AgentUnresolvedError:
            logger.exception("assistant_unresolved", debug_notes=_notes(context))
            return AgentResult.error(UNRESOLVED_REPLY)
        except Exception:
            logger.exception("assistant_unhandled_exception", debug_notes=_notes(context))
            return AgentResult.error(UNEXPECTED_REPLY)

        await self._record(tenant, "user", message, session_id)
        await self._record(tenant, "assistant", result.message, session_id)
        return result

    async def _load_history(
        self, tenant: TenantRef, session_id: str | None
    ) -> list[HistoryTurn]:
        try:
            return list(await self._history_store.load_history(tenant, session_id))
        except Exception as e:
            logger.warning(
                "assistant_history_unavailable",
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

    async def _record(
        self, tenant: TenantRef, role: str, content: str, session_id: str | None
    ) -> None:
        try:
            await self._history_store.append(tenant, role, content, session_id)
        except Exception as e:
            logger.warning(
                "assistant_history_record_failed",
                role=role,
                error=str(e),
                error_type=type(e).__name__,
            )


def _notes(context: AgentContext) -> list[dict[str, object]]:
    return [{"note": n.note, **n.context} for n in context.debug_notes]


def build_project_assistant(
    settings: Settings,
    *,
    model_client: ModelClient | None,
    history_store: HistoryStore,
) -> ProjectAssistantAgent:
    """Wire the default collaborators and tools into a ready facade.

    With model_client=None every LLM-backed collaborator degrades to its
    heuristic path and the ai-assistant tool stays disabled.
    """
    cfg = settings.assistant
    model = settings.openai.model

    classifier = IntentClassifierService(
        model_client,
        model=model,
        history_tail=cfg.history_tail_for_llm,
        temperature=cfg.classifier_temperature,
    )
    qa = QuestionAnsweringService(
        model_client,
        model=model,
        history_tail=cfg.history_tail_for_llm,
        max_answer_chars=cfg.answer_max_chars,
        temperature=cfg.answer_temperature,
    )
    planner = CommandPlanningService(
        model_client,
        model=model,
        history_tail=cfg.history_tail_for_llm,
        temperature=cfg.planner_temperature,
    )
    assistant = AssistantService(
        model_client,
        model=model,
        enabled=cfg.ai_enhancement_enabled,
        temperature=cfg.assistant_temperature,
        max_sessions=cfg.assistant_max_sessions,
    )

    tools = build_default_tools(
        classifier,
        qa,
        planner,
        StaticHelpProvider(),
        assistant=assistant,
        complexity=ComplexityHeuristic(),
    )
    kernel = AgentKernel(tools)
    logger.info(
        "assistant_built",
        tool_names=kernel.tool_names(),
        llm_enabled=model_client is not None,
    )
    return ProjectAssistantAgent(kernel, history_store)
