"""
CRUD over saved journal sessions.

Public API
----------
SessionStore.create(session_data)          -> int
SessionStore.read(session_id)              -> Optional[Dict]
SessionStore.update(session_id, partial)   -> bool
SessionStore.delete(session_id)            -> bool
SessionStore.list_all()                    -> List[SessionSummary]
SessionStore.search(term)                  -> List[SessionSummary]
SessionStore.commit()                      -> None

Every database error is re-raised as ``SessionStoreError`` so routers and the
journal workspace can report it without partially applying anything.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_models import SESSION_TYPE, JournalSession
from app.utils.helpers import utc_now

logger = logging.getLogger(__name__)

# Fields a caller may set through create/update
SESSION_FIELDS = (
    "title",
    "left_entries",
    "right_entries",
    "conversation_history",
    "vocabulary_data",
)


class SessionStoreError(Exception):
    """Raised when the session store cannot complete an operation."""


@dataclasses.dataclass
class SessionSummary:
    """One row of SessionStore.list_all or SessionStore.search."""

    id: int
    title: str
    created_at: datetime
    updated_at: datetime
    entry_count: int


def default_title(now: Optional[datetime] = None) -> str:
    now = now or utc_now()
    return f"Journal Session {now:%Y-%m-%d} {now:%H:%M:%S}"


def _to_dict(row: JournalSession) -> Dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "left_entries": list(row.left_entries or []),
        "right_entries": list(row.right_entries or []),
        "conversation_history": list(row.conversation_history or []),
        "vocabulary_data": dict(row.vocabulary_data or {}),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def _to_summary(row: JournalSession) -> SessionSummary:
    return SessionSummary(
        id=row.id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
        entry_count=len(row.left_entries or []) + len(row.right_entries or []),
    )


class SessionStore:
    """Session persistence on top of one AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_row(self, session_id: int) -> Optional[JournalSession]:
        result = await self.db.execute(
            select(JournalSession).where(
                JournalSession.id == session_id,
                JournalSession.session_type == SESSION_TYPE,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, session_data: Dict[str, Any]) -> int:
        now = utc_now()
        row = JournalSession(
            title=session_data.get("title") or default_title(now),
            session_type=SESSION_TYPE,
            left_entries=list(session_data.get("left_entries") or []),
            right_entries=list(session_data.get("right_entries") or []),
            conversation_history=list(session_data.get("conversation_history") or []),
            vocabulary_data=dict(session_data.get("vocabulary_data") or {}),
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(row)
            await self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Error creating session: %s", exc)
            raise SessionStoreError(f"Could not create session: {exc}") from exc

        logger.info("Session created with id=%d title=%r", row.id, row.title)
        return row.id

    async def read(self, session_id: int) -> Optional[Dict[str, Any]]:
        try:
            row = await self._get_row(session_id)
        except SQLAlchemyError as exc:
            logger.error("Error reading session %s: %s", session_id, exc)
            raise SessionStoreError(f"Could not read session {session_id}: {exc}") from exc

        if row is None:
            logger.info("No such session: %s", session_id)
            return None
        return _to_dict(row)

    async def update(self, session_id: int, partial: Dict[str, Any]) -> bool:
        """Apply the known fields of *partial*.  Returns False if the session is missing."""
        try:
            row = await self._get_row(session_id)
            if row is None:
                return False

            for field in SESSION_FIELDS:
                if field in partial and partial[field] is not None:
                    setattr(row, field, partial[field])
            row.updated_at = utc_now()
            await self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Error updating session %s: %s", session_id, exc)
            raise SessionStoreError(f"Could not update session {session_id}: {exc}") from exc

        logger.info("Session %d updated", session_id)
        return True

    async def delete(self, session_id: int) -> bool:
        try:
            row = await self._get_row(session_id)
            if row is None:
                return False
            await self.db.delete(row)
            await self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Error deleting session %s: %s", session_id, exc)
            raise SessionStoreError(f"Could not delete session {session_id}: {exc}") from exc

        logger.info("Session %d deleted", session_id)
        return True

    async def list_all(self) -> List[SessionSummary]:
        """All sessions, most recently updated first."""
        try:
            result = await self.db.execute(
                select(JournalSession)
                .where(JournalSession.session_type == SESSION_TYPE)
                .order_by(JournalSession.updated_at.desc(), JournalSession.id.desc())
            )
            rows = result.scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Error listing sessions: %s", exc)
            raise SessionStoreError(f"Could not list sessions: {exc}") from exc

        return [_to_summary(row) for row in rows]

    async def search(self, term: str) -> List[SessionSummary]:
        """Sessions whose title starts with *term*, ordered by title."""
        try:
            result = await self.db.execute(
                select(JournalSession)
                .where(
                    JournalSession.session_type == SESSION_TYPE,
                    JournalSession.title.startswith(term, autoescape=True),
                )
                .order_by(JournalSession.title, JournalSession.id)
            )
            rows = result.scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Error searching sessions for %r: %s", term, exc)
            raise SessionStoreError(f"Could not search sessions: {exc}") from exc

        return [_to_summary(row) for row in rows]

    async def commit(self) -> None:
        """Commit pending writes so callers can act on a durable result."""
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.error("Error committing session changes: %s", exc)
            await self.db.rollback()
            raise SessionStoreError(f"Could not commit session changes: {exc}") from exc
