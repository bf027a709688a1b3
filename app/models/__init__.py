"""Database and schema models for Journal Buddy."""
from app.models.database_models import (
    JournalSession,
    SESSION_TYPE,
)
from app.models.schemas import (
    EntrySchema,
    SessionCreateRequest,
    SessionResponse,
    SessionSummaryResponse,
    EntryAnnotationResponse,
    SynonymLookupResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "JournalSession",
    "SESSION_TYPE",
    # Pydantic schemas
    "EntrySchema",
    "SessionCreateRequest",
    "SessionResponse",
    "SessionSummaryResponse",
    "EntryAnnotationResponse",
    "SynonymLookupResponse",
    "HealthCheckResponse",
]
