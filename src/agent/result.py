"""Terminal result of one assistant run.

An AgentResult is built exactly once per request, either by the tool that
ends the pipeline or by the facade for input rejections and error mapping.
Shape rules are enforced by the named constructors, never at read time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

DEFAULT_UI_HINT: dict[str, Any] = {"show_snapshot": True}


class ResultKind(StrEnum):
    """Closed set of outcomes. Values are the wire ``type`` field."""

    information = "information"
    command_preview = "command"
    error = "error"


def _require_message(message: str) -> str:
    if not isinstance(message, str) or not message.strip():
        raise ValueError("AgentResult message must be a non-empty string")
    return message


@dataclass(frozen=True)
class AgentResult:
    """Immutable outcome value. Use the classmethod constructors."""

    kind: ResultKind
    message: str
    requires_confirmation: bool = False
    payload: dict[str, Any] | None = None
    ui: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def information(
        cls,
        message: str,
        data: Mapping[str, Any] | None = None,
        meta: Mapping[str, Any] | None = None,
        *,
        ui: Mapping[str, Any] | None = None,
    ) -> AgentResult:
        """Informational answer. A snapshot UI hint accompanies non-empty data."""
        payload = dict(data) if data else None
        hint = None
        if payload is not None:
            hint = dict(ui) if ui else dict(DEFAULT_UI_HINT)
        return cls(
            kind=ResultKind.information,
            message=_require_message(message),
            requires_confirmation=False,
            payload=payload,
            ui=hint,
            metadata=dict(meta or {}),
        )

    @classmethod
    def command_preview(
        cls,
        message: str,
        command_data: Mapping[str, Any],
        requires_confirmation: bool = True,
        meta: Mapping[str, Any] | None = None,
    ) -> AgentResult:
        """Planned command awaiting user confirmation. command_data is mandatory."""
        if command_data is None:
            raise ValueError("command_preview requires command_data")
        return cls(
            kind=ResultKind.command_preview,
            message=_require_message(message),
            requires_confirmation=requires_confirmation,
            payload=dict(command_data),
            metadata=dict(meta or {}),
        )

    @classmethod
    def error(cls, message: str, meta: Mapping[str, Any] | None = None) -> AgentResult:
        return cls(
            kind=ResultKind.error,
            message=_require_message(message),
            requires_confirmation=False,
            metadata=dict(meta or {}),
        )

    @property
    def is_error(self) -> bool:
        return self.kind is ResultKind.error

    def to_dict(self) -> dict[str, Any]:
        """Flat wire projection. Absent optional fields are omitted, not nulled."""
        out: dict[str, Any] = {
            "type": self.kind.value,
            "message": self.message,
            "requires_confirmation": self.requires_confirmation,
        }
        if self.kind is ResultKind.command_preview:
            out["command_data"] = dict(self.payload or {})
        elif self.payload is not None:
            out["data"] = dict(self.payload)
            if self.ui is not None:
                out["ui"] = dict(self.ui)
        if self.metadata:
            out["meta"] = dict(self.metadata)
        return out
