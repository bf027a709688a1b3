"""journal sessions

Revision ID: 001
Revises:
Create Date: 2026-10-19

The single journal_sessions table as defined in app/models/database_models.py.
Entries, conversation history and vocabulary are JSON documents.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "journal_sessions",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("session_type", sa.String(64), nullable=False, index=True),
        sa.Column("left_entries", sa.JSON, nullable=False),
        sa.Column("right_entries", sa.JSON, nullable=False),
        sa.Column("conversation_history", sa.JSON, nullable=False),
        sa.Column("vocabulary_data", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("journal_sessions")
