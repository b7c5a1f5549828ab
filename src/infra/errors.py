"""Custom exception hierarchy for TaskPilot.

All application-specific exceptions inherit from TaskPilotError,
which carries an error code for HTTP/RPC error mapping.
"""

from __future__ import annotations


class TaskPilotError(Exception):
    """Base exception for all TaskPilot errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class GatewayError(TaskPilotError):
    """Errors in the HTTP gateway layer."""

    def __init__(self, message: str, *, code: str = "GATEWAY_ERROR") -> None:
        super().__init__(message, code=code)


class AgentError(TaskPilotError):
    """Errors in the agent runtime (kernel, context, tools)."""

    def __init__(self, message: str, *, code: str = "AGENT_ERROR") -> None:
        super().__init__(message, code=code)


class AgentUnresolvedError(AgentError):
    """Kernel walked the whole tool list and no tool produced a result.

    Indicates a mis-configured tool list (fallback missing or mis-ordered).
    """

    def __init__(self, message: str = "No tool produced a result") -> None:
        super().__init__(message, code="AGENT_UNRESOLVED")


class ResultAlreadySetError(AgentError):
    """A second terminal result was written to the same context."""

    def __init__(self, message: str = "Context already holds a terminal result") -> None:
        super().__init__(message, code="RESULT_ALREADY_SET")


class ToolError(AgentError):
    """Errors during tool execution."""

    def __init__(self, message: str, *, code: str = "TOOL_ERROR") -> None:
        super().__init__(message, code=code)


class LLMError(ToolError):
    """Errors from LLM API calls (timeouts, rate limits, failures, bad JSON)."""

    def __init__(self, message: str, *, code: str = "LLM_ERROR") -> None:
        super().__init__(message, code=code)


class SessionError(TaskPilotError):
    """Errors in conversation session management."""

    def __init__(self, message: str, *, code: str = "SESSION_ERROR") -> None:
        super().__init__(message, code=code)


class HistoryError(SessionError):
    """Conversation history could not be loaded or persisted."""

    def __init__(self, message: str, *, code: str = "HISTORY_ERROR") -> None:
        super().__init__(message, code=code)
