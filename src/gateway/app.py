from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.agent.assistant import ProjectAssistantAgent, build_project_assistant
from src.agent.context import TenantRef
from src.agent.model_client import OpenAICompatModelClient
from src.config.settings import get_settings
from src.gateway.protocol import (
    AssistantResponse,
    ChatRequest,
    ErrorResponse,
    HistoryClearedResponse,
    SuggestionsResponse,
)
from src.infra.errors import GatewayError, HistoryError, TaskPilotError
from src.infra.logging import setup_logging
from src.services.help import StaticHelpProvider
from src.session.database import create_db_engine, ensure_schema, make_session_factory
from src.session.history import ConversationHistoryStore, InMemoryHistoryStore

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the history store, model client and assistant agent into app.state."""
    settings = get_settings()
    setup_logging(json_output=settings.gateway.log_json, log_level=settings.gateway.log_level)

    engine = None
    if settings.assistant.history_backend == "postgres":
        # DB is mandatory for this backend; startup fails if DB/schema unavailable.
        engine = await create_db_engine(settings.database)
        await ensure_schema(engine, settings.database.schema_)
        history_store = ConversationHistoryStore(
            make_session_factory(engine),
            load_limit=settings.assistant.history_load_limit,
        )
        logger.info("db_connected")
    else:
        history_store = InMemoryHistoryStore(max_turns=settings.assistant.history_load_limit)
        logger.warning("history_in_memory")

    model_client = None
    if settings.openai.enabled:
        model_client = OpenAICompatModelClient(
            api_key=settings.openai.api_key,
            base_url=settings.openai.base_url,
            max_retries=settings.openai.max_retries,
            timeout=settings.openai.timeout_seconds,
        )
    else:
        logger.warning("llm_disabled")

    app.state.assistant_agent = build_project_assistant(
        settings, model_client=model_client, history_store=history_store
    )
    app.state.history_store = history_store
    app.state.help_provider = StaticHelpProvider()
    logger.info(
        "gateway_started",
        host=settings.gateway.host,
        port=settings.gateway.port,
        history_backend=settings.assistant.history_backend,
        llm_enabled=model_client is not None,
    )

    yield

    if engine is not None:
        await engine.dispose()
        logger.info("db_engine_disposed")


app = FastAPI(title="TaskPilot Assistant Gateway", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskPilotError)
async def taskpilot_error_handler(request: Request, exc: TaskPilotError) -> JSONResponse:
    if isinstance(exc, HistoryError):
        status_code = 503
    elif isinstance(exc, GatewayError):
        status_code = 400
    else:
        status_code = 500
    logger.warning("request_error", code=exc.code, error=str(exc), path=request.url.path)
    body = ErrorResponse(code=exc.code, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _tenant(project_id: str) -> TenantRef:
    project_id = project_id.strip()
    if not project_id:
        raise GatewayError("project_id must not be empty", code="INVALID_PARAMS")
    return TenantRef(id=project_id, name=project_id)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post(
    "/projects/{project_id}/assistant/chat",
    response_model=AssistantResponse,
    response_model_exclude_none=True,
)
async def chat(project_id: str, body: ChatRequest, request: Request) -> AssistantResponse:
    agent: ProjectAssistantAgent = request.app.state.assistant_agent
    result = await agent.handle(_tenant(project_id), body.message, body.session_id)
    return AssistantResponse.from_result(result)


@app.get("/projects/{project_id}/assistant/suggestions", response_model=SuggestionsResponse)
async def suggestions(project_id: str, request: Request) -> SuggestionsResponse:
    _tenant(project_id)
    help_provider: StaticHelpProvider = request.app.state.help_provider
    return SuggestionsResponse(suggestions=help_provider.suggestions())


@app.delete("/projects/{project_id}/assistant/history", response_model=HistoryClearedResponse)
async def clear_history(
    project_id: str, request: Request, session_id: str | None = None
) -> HistoryClearedResponse:
    history_store = request.app.state.history_store
    removed = await history_store.clear(_tenant(project_id), session_id or None)
    logger.info("history_clear_requested", project_id=project_id, session_id=session_id)
    return HistoryClearedResponse(removed=removed)
