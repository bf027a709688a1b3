"""
Service dependencies for FastAPI routes.

The synonym cache, tutor and journal workspace are owned by the application
and live on ``app.state``.  ``init_app_state`` builds them once (from the
lifespan, or from test fixtures with a scripted tutor); the ``get_*``
functions below hand them to routes.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.journal import JournalWorkspace
from app.services.session_store import SessionStore
from app.services.synonym_cache import SynonymCache
from app.services.tutor import TutorService

logger = logging.getLogger(__name__)


def init_app_state(app: FastAPI, tutor: Optional[TutorService] = None) -> JournalWorkspace:
    """Create the cache, tutor and workspace and attach them to *app*."""
    cache = SynonymCache()
    tutor = tutor or TutorService()
    workspace = JournalWorkspace(cache=cache, tutor=tutor)

    app.state.synonym_cache = cache
    app.state.tutor = tutor
    app.state.journal = workspace
    logger.info("Application state initialised")
    return workspace


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is still starting up.",
        )
    return value


async def get_synonym_cache(request: Request) -> SynonymCache:
    return _state(request, "synonym_cache")


async def get_tutor(request: Request) -> TutorService:
    return _state(request, "tutor")


async def get_workspace(request: Request) -> JournalWorkspace:
    return _state(request, "journal")


async def get_session_store(db: AsyncSession = Depends(get_db)) -> SessionStore:
    return SessionStore(db)
