"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Union
from datetime import datetime
from enum import Enum


# A saved vocabulary entry is either a sentence-level {word: [synonyms]}
# map or a word-level synonym list.
VocabularyValue = Union[Dict[str, List[str]], List[str]]


class AnnotationPhaseSchema(str, Enum):
    """Annotation states for API responses."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    HOVER_ACTIVE = "hover_active"


# ---------------------------------------------------------------------------
# Entries / conversation
# ---------------------------------------------------------------------------

class EntrySchema(BaseModel):
    """A stored journal entry (timestamp as ISO-8601 string)."""

    id: str
    text: str
    timestamp: str
    colorIndex: int = 0


class ConversationTurn(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    message: str


# ---------------------------------------------------------------------------
# Session store schemas
# ---------------------------------------------------------------------------

class SessionCreateRequest(BaseModel):
    """Schema for creating a saved session directly in the store."""

    title: Optional[str] = Field(None, max_length=255)
    left_entries: List[EntrySchema] = []
    right_entries: List[EntrySchema] = []
    conversation_history: List[ConversationTurn] = []
    vocabulary_data: Dict[str, VocabularyValue] = {}


class SessionUpdateRequest(BaseModel):
    """Partial update; omitted fields are left as they are."""

    title: Optional[str] = Field(None, max_length=255)
    left_entries: Optional[List[EntrySchema]] = None
    right_entries: Optional[List[EntrySchema]] = None
    conversation_history: Optional[List[ConversationTurn]] = None
    vocabulary_data: Optional[Dict[str, VocabularyValue]] = None


class SessionCreatedResponse(BaseModel):
    id: int
    message: str = "Session created"


class SessionResponse(BaseModel):
    """Full saved session.  Entries are returned exactly as stored."""

    id: int
    title: str
    left_entries: List[Dict] = []
    right_entries: List[Dict] = []
    conversation_history: List[Dict] = []
    vocabulary_data: Dict[str, VocabularyValue] = {}
    created_at: datetime
    updated_at: datetime


class SessionSummaryResponse(BaseModel):
    id: int
    title: str
    created_at: datetime
    updated_at: datetime
    entry_count: int

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Journal workspace schemas
# ---------------------------------------------------------------------------

class NewJournalRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)


class EntrySubmitRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)


class EntrySubmitResponse(BaseModel):
    user_entry: EntrySchema
    reply_entry: EntrySchema
    reply_failed: bool = False
    saved: bool = False
    annotation_phase: AnnotationPhaseSchema


class JournalStateResponse(BaseModel):
    """Snapshot of the live journal."""

    session_id: Optional[int] = None
    title: Optional[str] = None
    left_entries: List[EntrySchema]
    right_entries: List[EntrySchema]
    conversation_history: List[ConversationTurn]
    vocabulary_count: int
    is_busy: bool = False


class JournalSaveResponse(BaseModel):
    session_id: Optional[int] = None
    saved: bool
    vocabulary_count: int


# ---------------------------------------------------------------------------
# Annotation schemas
# ---------------------------------------------------------------------------

class RectSchema(BaseModel):
    """Screen-space bounding box from getBoundingClientRect()."""

    left: float
    top: float
    width: float = Field(..., ge=0)
    height: float = Field(0.0, ge=0)


class TooltipPositionSchema(BaseModel):
    x: float
    y: float


class AnnotatedToken(BaseModel):
    text: str
    kind: str
    interactive: bool = False
    normalized: str = ""
    synonyms: List[str] = []


class EntryAnnotationResponse(BaseModel):
    entry_id: str
    enabled: bool
    phase: AnnotationPhaseSchema
    lines: List[List[AnnotatedToken]]
    synonyms: Dict[str, List[str]] = {}


class HoverRequest(BaseModel):
    word: str = Field(..., min_length=1)
    word_rect: RectSchema
    container_rect: RectSchema
    viewport_width: float = Field(..., gt=0)


class HoverResponse(BaseModel):
    entry_id: str
    phase: AnnotationPhaseSchema
    hovered_word_key: Optional[str] = None
    tooltip_position: Optional[TooltipPositionSchema] = None
    active_synonym_list: List[str] = []


# ---------------------------------------------------------------------------
# Vocabulary schemas
# ---------------------------------------------------------------------------

class SynonymLookupRequest(BaseModel):
    sentence: str = Field(..., min_length=1, max_length=5000)


class SynonymLookupResponse(BaseModel):
    sentence: str
    synonyms: Dict[str, List[str]]
    cached: bool = False


class TooltipRequest(BaseModel):
    word_rect: RectSchema
    container_rect: RectSchema
    viewport_width: float = Field(..., gt=0)
    synonyms: List[str] = []


class TooltipResponse(BaseModel):
    x: float
    y: float
    estimated_width: float


class EnhanceRequest(BaseModel):
    sentence: str = Field(..., min_length=1, max_length=2000)


class EnhanceResponse(BaseModel):
    original: str
    enhanced: str


class SuggestionRequest(BaseModel):
    word: str = Field(..., min_length=1, max_length=100)
    context: str = Field("", max_length=2000)


class SuggestionResponse(BaseModel):
    word: str
    suggestions: List[str]


class ExplainRequest(BaseModel):
    word: str = Field(..., min_length=1, max_length=100)


class ExplainResponse(BaseModel):
    word: str
    explanation: str


class VocabularyCacheResponse(BaseModel):
    entries: Dict[str, VocabularyValue]
    count: int


# Health Check Schema
class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    ollama: str
    vocabulary_entries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    timestamp: datetime
    version: str = "0.1.0"
