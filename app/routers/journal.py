"""
Live journal endpoints (the two notebooks on screen).

Route summary
-------------
GET    /api/journal                              — current state
POST   /api/journal/new                          — start a new session
POST   /api/journal/load/{session_id}            — switch to a saved session
POST   /api/journal/save                         — save current state
POST   /api/journal/entries                      — submit an entry, get AI reply
GET    /api/journal/entries/{entry_id}/annotations — tokens + synonym marks
POST   /api/journal/entries/{entry_id}/hover     — pointer enters a word
DELETE /api/journal/entries/{entry_id}/hover     — pointer leaves
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.services import get_session_store, get_workspace
from app.models.schemas import (
    AnnotatedToken,
    AnnotationPhaseSchema,
    ConversationTurn,
    EntryAnnotationResponse,
    EntrySchema,
    EntrySubmitRequest,
    EntrySubmitResponse,
    HoverRequest,
    HoverResponse,
    JournalSaveResponse,
    JournalStateResponse,
    NewJournalRequest,
    TooltipPositionSchema,
)
from app.services.annotation import AnnotationPhase, EntryAnnotator, Rect
from app.services.journal import Entry, JournalWorkspace, WorkspaceBusyError
from app.services.session_store import SessionStore, SessionStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _entry_schema(entry: Entry) -> EntrySchema:
    return EntrySchema(**entry.to_dict())


def _state_response(workspace: JournalWorkspace) -> JournalStateResponse:
    return JournalStateResponse(
        session_id=workspace.current_session_id,
        title=workspace.title,
        left_entries=[_entry_schema(e) for e in workspace.left_entries],
        right_entries=[_entry_schema(e) for e in workspace.right_entries],
        conversation_history=[
            ConversationTurn(role=t.get("role", "user"), message=t.get("message", ""))
            for t in workspace.conversation_history
        ],
        vocabulary_count=len(workspace.cache),
        is_busy=workspace.is_busy,
    )


def _store_failed(action: str, exc: SessionStoreError) -> HTTPException:
    logger.error("Journal %s failed: %s", action, exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Could not {action} the journal session: {exc}",
    )


def _annotator_or_404(workspace: JournalWorkspace, entry_id: str) -> EntryAnnotator:
    annotator = workspace.annotator_for(entry_id)
    if annotator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Entry {entry_id} not found.",
        )
    return annotator


def _rect(schema) -> Rect:
    return Rect(left=schema.left, top=schema.top, width=schema.width, height=schema.height)


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("", response_model=JournalStateResponse)
async def get_journal(
    workspace: JournalWorkspace = Depends(get_workspace),
) -> JournalStateResponse:
    return _state_response(workspace)


@router.post("/new", response_model=JournalStateResponse, status_code=status.HTTP_201_CREATED)
async def new_journal(
    body: Optional[NewJournalRequest] = None,
    workspace: JournalWorkspace = Depends(get_workspace),
    store: SessionStore = Depends(get_session_store),
) -> JournalStateResponse:
    """Start a fresh session; clears entries and learned vocabulary."""
    try:
        await workspace.new_session(store, title=body.title if body else None)
    except SessionStoreError as exc:
        raise _store_failed("create", exc)
    return _state_response(workspace)


@router.post("/load/{session_id}", response_model=JournalStateResponse)
async def load_journal(
    session_id: int,
    workspace: JournalWorkspace = Depends(get_workspace),
    store: SessionStore = Depends(get_session_store),
) -> JournalStateResponse:
    try:
        found = await workspace.load_session(store, session_id)
    except SessionStoreError as exc:
        raise _store_failed("load", exc)
    if not found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found.",
        )
    return _state_response(workspace)


@router.post("/save", response_model=JournalSaveResponse)
async def save_journal(
    workspace: JournalWorkspace = Depends(get_workspace),
    store: SessionStore = Depends(get_session_store),
) -> JournalSaveResponse:
    try:
        saved = await workspace.save_session(store)
    except SessionStoreError as exc:
        raise _store_failed("save", exc)
    return JournalSaveResponse(
        session_id=workspace.current_session_id,
        saved=saved,
        vocabulary_count=len(workspace.cache),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRIES
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/entries", response_model=EntrySubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_entry(
    body: EntrySubmitRequest,
    workspace: JournalWorkspace = Depends(get_workspace),
    store: SessionStore = Depends(get_session_store),
) -> EntrySubmitResponse:
    """
    Add the child's entry and the AI Buddy's reply.

    Synonyms for the entry load in the background; poll the annotations
    endpoint until its phase is ``ready``.
    """
    try:
        result = await workspace.submit_entry(store, body.text)
    except WorkspaceBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    annotator = workspace.board.get(result.user_entry.id)
    phase = annotator.phase if annotator is not None else AnnotationPhase.IDLE

    return EntrySubmitResponse(
        user_entry=_entry_schema(result.user_entry),
        reply_entry=_entry_schema(result.reply_entry),
        reply_failed=result.reply_failed,
        saved=result.saved,
        annotation_phase=AnnotationPhaseSchema(phase.value),
    )


@router.get("/entries/{entry_id}/annotations", response_model=EntryAnnotationResponse)
async def get_entry_annotations(
    entry_id: str,
    workspace: JournalWorkspace = Depends(get_workspace),
) -> EntryAnnotationResponse:
    annotator = _annotator_or_404(workspace, entry_id)
    lines: List[List[AnnotatedToken]] = [
        [
            AnnotatedToken(
                text=token.text,
                kind=token.kind.value,
                interactive=token.interactive,
                normalized=token.normalized,
                synonyms=token.synonyms,
            )
            for token in line
        ]
        for line in annotator.render()
    ]
    return EntryAnnotationResponse(
        entry_id=entry_id,
        enabled=annotator.enabled,
        phase=AnnotationPhaseSchema(annotator.phase.value),
        lines=lines,
        synonyms=annotator.synonyms if annotator.enabled else {},
    )


@router.post("/entries/{entry_id}/hover", response_model=HoverResponse)
async def hover_word(
    entry_id: str,
    body: HoverRequest,
    workspace: JournalWorkspace = Depends(get_workspace),
) -> HoverResponse:
    """Tooltip placement for a hovered word, from already-loaded synonyms only."""
    annotator = _annotator_or_404(workspace, entry_id)
    hover = annotator.pointer_enter(
        body.word,
        _rect(body.word_rect),
        _rect(body.container_rect),
        body.viewport_width,
    )
    if hover is None:
        return HoverResponse(
            entry_id=entry_id,
            phase=AnnotationPhaseSchema(annotator.phase.value),
        )
    return HoverResponse(
        entry_id=entry_id,
        phase=AnnotationPhaseSchema(annotator.phase.value),
        hovered_word_key=hover.hovered_word_key,
        tooltip_position=TooltipPositionSchema(
            x=hover.tooltip_position.x, y=hover.tooltip_position.y
        ),
        active_synonym_list=hover.active_synonym_list,
    )


@router.delete("/entries/{entry_id}/hover", response_model=HoverResponse)
async def leave_word(
    entry_id: str,
    workspace: JournalWorkspace = Depends(get_workspace),
) -> HoverResponse:
    annotator = _annotator_or_404(workspace, entry_id)
    annotator.pointer_leave()
    return HoverResponse(
        entry_id=entry_id,
        phase=AnnotationPhaseSchema(annotator.phase.value),
    )
