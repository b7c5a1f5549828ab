from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from src.agent.result import AgentResult


class ChatRequest(BaseModel):
    message: str = Field(max_length=8000)
    session_id: str | None = None

    @field_validator("session_id", mode="before")
    @classmethod
    def _normalize_session_id(cls, v: Any) -> str | None:
        if v is None:
            return None
        if not isinstance(v, str):
            msg = f"session_id must be a string (got {type(v).__name__})"
            raise ValueError(msg)
        v = v.strip()
        return v or None  # empty string → tenant-wide thread


class AssistantResponse(BaseModel):
    """Wire shape of one AgentResult. None fields are excluded on output."""

    type: Literal["information", "command", "error"]
    message: str
    requires_confirmation: bool = False
    command_data: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    ui: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, result: AgentResult) -> AssistantResponse:
        return cls.model_validate(result.to_dict())


class SuggestionsResponse(BaseModel):
    suggestions: list[str]


class HistoryClearedResponse(BaseModel):
    removed: int


class ErrorResponse(BaseModel):
    code: str
    message: str
