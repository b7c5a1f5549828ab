"""Conversation history stores consumed by the assistant facade.

Both stores return turns oldest first, limited to the most recent N. Only
user and assistant roles are stored. Database failures surface as
HistoryError; the facade decides that history is best-effort.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.agent.context import HistoryTurn, TenantRef
from src.infra.errors import HistoryError
from src.session.models import ConversationMessageRecord

logger = structlog.get_logger()

ALLOWED_ROLES = frozenset({"user", "assistant"})


def _check_role(role: str) -> None:
    if role not in ALLOWED_ROLES:
        raise HistoryError(f"Unsupported history role: {role!r}", code="HISTORY_BAD_ROLE")


class ConversationHistoryStore:
    """PostgreSQL-backed history keyed by (tenant_id, session_id)."""

    def __init__(self, db_session_factory: async_sessionmaker, load_limit: int = 100) -> None:
        self._db: async_sessionmaker = db_session_factory
        self._load_limit = load_limit

    async def load_history(
        self, tenant: TenantRef, session_id: str | None
    ) -> list[HistoryTurn]:
        stmt = (
            select(ConversationMessageRecord)
            .where(ConversationMessageRecord.tenant_id == tenant.id)
            .where(_session_clause(session_id))
            .order_by(ConversationMessageRecord.id.desc())
            .limit(self._load_limit)
        )
        try:
            async with self._db() as db_session:
                result = await db_session.execute(stmt)
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise HistoryError(f"Failed to load history: {e}") from e

        turns = [HistoryTurn(role=r.role, content=r.content) for r in reversed(records)]
        logger.debug(
            "history_loaded", tenant_id=tenant.id, session_id=session_id, turn_count=len(turns)
        )
        return turns

    async def append(
        self,
        tenant: TenantRef,
        role: str,
        content: str,
        session_id: str | None,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        _check_role(role)
        try:
            async with self._db() as db_session:
                db_session.add(
                    ConversationMessageRecord(
                        tenant_id=tenant.id,
                        session_id=session_id,
                        role=role,
                        content=content,
                        metadata_=metadata,
                    )
                )
                await db_session.commit()
        except SQLAlchemyError as e:
            raise HistoryError(f"Failed to append {role} turn: {e}") from e
        logger.debug("history_appended", tenant_id=tenant.id, session_id=session_id, role=role)

    async def clear(self, tenant: TenantRef, session_id: str | None) -> int:
        """Delete the conversation. Returns the number of removed turns."""
        stmt = (
            delete(ConversationMessageRecord)
            .where(ConversationMessageRecord.tenant_id == tenant.id)
            .where(_session_clause(session_id))
        )
        try:
            async with self._db() as db_session:
                result = await db_session.execute(stmt)
                await db_session.commit()
        except SQLAlchemyError as e:
            raise HistoryError(f"Failed to clear history: {e}") from e
        logger.info(
            "history_cleared", tenant_id=tenant.id, session_id=session_id, removed=result.rowcount
        )
        return result.rowcount


def _session_clause(session_id: str | None):
    if session_id is None:
        return ConversationMessageRecord.session_id.is_(None)
    return ConversationMessageRecord.session_id == session_id


class InMemoryHistoryStore:
    """Process-local history, used when no database is configured and in tests."""

    def __init__(self, max_turns: int = 100) -> None:
        self._max_turns = max_turns
        self._turns: defaultdict[tuple[str, str | None], deque[HistoryTurn]] = defaultdict(
            lambda: deque(maxlen=self._max_turns)
        )

    async def load_history(
        self, tenant: TenantRef, session_id: str | None
    ) -> list[HistoryTurn]:
        return list(self._turns.get((tenant.id, session_id), ()))

    async def append(
        self, tenant: TenantRef, role: str, content: str, session_id: str | None
    ) -> None:
        _check_role(role)
        self._turns[(tenant.id, session_id)].append(HistoryTurn(role=role, content=content))

    async def clear(self, tenant: TenantRef, session_id: str | None) -> int:
        removed = self._turns.pop((tenant.id, session_id), None)
        return len(removed) if removed is not None else 0
