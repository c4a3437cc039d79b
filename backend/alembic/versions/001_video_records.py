"""Video records migration.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the video_records table.
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
        "video_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_path", sa.String(1024), nullable=True),
        sa.Column("original", sa.String(255), nullable=True),
        sa.Column(
            "delete_source_on_complete",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("submitted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("state", sa.String(32), nullable=False, server_default="new"),
        sa.Column("job_data", sa.JSON(), nullable=True),
        sa.Column("check_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("outputs", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("playlist", sa.String(255), nullable=True),
        sa.Column("thumbnail", sa.String(255), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_video_records_state"),
        "video_records",
        ["state"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_video_records_state"), table_name="video_records")
    op.drop_table("video_records")
