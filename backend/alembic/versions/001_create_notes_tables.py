"""Create notes and note_tags tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: one row per note, one row per tag occurrence.
How:   Portable column types (Uuid, DateTime(timezone=True)) so the same
       migration runs on PostgreSQL and on SQLite for local development.

Rollback: downgrade() drops both tables; every note is lost.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Opaque note identifier"),
        sa.Column(
            "owner",
            sa.String(64),
            nullable=False,
            comment="Caller identity of the user who created the note",
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notes_owner", "notes", ["owner"])
    # Serves the list query: WHERE owner ORDER BY is_pinned DESC, updated_at DESC
    op.create_index(
        "idx_notes_owner_pinned_updated",
        "notes",
        ["owner", "is_pinned", "updated_at"],
    )

    op.create_table(
        "note_tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("note_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("tag", sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_note_tags_note_id", "note_tags", ["note_id"])
    op.create_index("ix_note_tags_tag", "note_tags", ["tag"])


def downgrade() -> None:
    op.drop_index("ix_note_tags_tag", table_name="note_tags")
    op.drop_index("ix_note_tags_note_id", table_name="note_tags")
    op.drop_table("note_tags")
    op.drop_index("idx_notes_owner_pinned_updated", table_name="notes")
    op.drop_index("idx_notes_owner", table_name="notes")
    op.drop_table("notes")
