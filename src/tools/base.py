from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.agent.context import AgentContext


class AgentTool(ABC):
    """Abstract base class for kernel tools.

    A tool is shared across requests: it may hold long-lived collaborator
    handles but must not keep per-request mutable fields. Everything a run
    needs lives on the AgentContext passed in.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, unique within a kernel. Used for metadata and logs."""
        ...

    @abstractmethod
    def supports(self, context: AgentContext) -> bool:
        """Pure predicate over the current context state. Must not have side effects."""
        ...

    @abstractmethod
    async def invoke(self, context: AgentContext) -> None:
        """Act on the context: write scratch state and/or set the terminal result.

        Expected business conditions (nothing to answer, collaborator declined)
        are signalled by returning without a result so a later tool can act.
        Raise only for failures no later tool could recover from.
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
