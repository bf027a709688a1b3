"""
Session store endpoints.

Route summary
-------------
POST   /api/sessions               — create a saved session
GET    /api/sessions               — list sessions, newest first
GET    /api/sessions?search=term   — sessions whose title starts with term
GET    /api/sessions/{session_id}  — read one session
PATCH  /api/sessions/{session_id}  — partial update
DELETE /api/sessions/{session_id}  — delete
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.services import get_session_store
from app.models.schemas import (
    SessionCreateRequest,
    SessionCreatedResponse,
    SessionResponse,
    SessionSummaryResponse,
    SessionUpdateRequest,
)
from app.services.session_store import SessionStore, SessionStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


def _store_unavailable(exc: SessionStoreError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Session store error: {exc}",
    )


def _not_found(session_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Session {session_id} not found.",
    )


@router.post("", response_model=SessionCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreateRequest,
    store: SessionStore = Depends(get_session_store),
) -> SessionCreatedResponse:
    """Persist a session document and return its id."""
    try:
        session_id = await store.create(body.model_dump())
        await store.commit()
    except SessionStoreError as exc:
        raise _store_unavailable(exc)
    return SessionCreatedResponse(id=session_id)


@router.get("", response_model=List[SessionSummaryResponse])
async def list_sessions(
    search: Optional[str] = None,
    store: SessionStore = Depends(get_session_store),
) -> List[SessionSummaryResponse]:
    """Newest first, or ordered by title when filtering by a title prefix."""
    try:
        if search:
            summaries = await store.search(search)
        else:
            summaries = await store.list_all()
    except SessionStoreError as exc:
        raise _store_unavailable(exc)
    return [SessionSummaryResponse.model_validate(s) for s in summaries]


@router.get("/{session_id}", response_model=SessionResponse)
async def read_session(
    session_id: int,
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    try:
        data = await store.read(session_id)
    except SessionStoreError as exc:
        raise _store_unavailable(exc)
    if data is None:
        raise _not_found(session_id)
    return SessionResponse(**data)


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: int,
    body: SessionUpdateRequest,
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Apply the fields present in the request body."""
    try:
        ok = await store.update(session_id, body.model_dump(exclude_none=True))
        if not ok:
            raise _not_found(session_id)
        await store.commit()
        data = await store.read(session_id)
    except SessionStoreError as exc:
        raise _store_unavailable(exc)
    return SessionResponse(**data)


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_session(
    session_id: int,
    store: SessionStore = Depends(get_session_store),
) -> None:
    try:
        deleted = await store.delete(session_id)
        if deleted:
            await store.commit()
    except SessionStoreError as exc:
        raise _store_unavailable(exc)
    if not deleted:
        raise _not_found(session_id)
