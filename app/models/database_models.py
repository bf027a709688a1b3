"""
SQLAlchemy ORM models for the Journal Buddy database.
A journal session is stored as one document-style row with JSON columns.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
)
from sqlalchemy.sql import func

from app.database import Base
from app.utils.helpers import utc_now


SESSION_TYPE = "dual-notebook-session"


class JournalSession(Base):
    """Saved bundle of journal entries, AI replies, conversation and vocabulary."""

    __tablename__ = "journal_sessions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    session_type = Column(String(64), nullable=False, default=SESSION_TYPE, index=True)

    # Entries are stored with ISO-8601 timestamp strings
    left_entries = Column(JSON, nullable=False, default=list)    # user-authored
    right_entries = Column(JSON, nullable=False, default=list)   # AI replies
    conversation_history = Column(JSON, nullable=False, default=list)
    # Exported synonym cache: normalized sentence -> {word: [synonyms]}
    vocabulary_data = Column(JSON, nullable=False, default=dict)

    # Python-side defaults so values are known right after flush; the store
    # bumps updated_at explicitly on every update.
    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
