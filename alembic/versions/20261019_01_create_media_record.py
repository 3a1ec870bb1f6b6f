"""Create media_record table."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "media_record",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("original_name", sa.String(length=512), nullable=False),
        sa.Column("mime_type", sa.String(length=128), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("lane", sa.String(length=16), nullable=False),
        sa.Column("storage_key", sa.String(length=1024), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("bucket", sa.String(length=255), nullable=False),
        sa.Column("etag", sa.String(length=255)),
        sa.Column("version_id", sa.String(length=255)),
        sa.Column("uploaded_by", sa.String(length=64)),
        sa.Column("is_image", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_video", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("width", sa.Integer()),
        sa.Column("height", sa.Integer()),
        sa.Column("duration", sa.Float()),
        sa.Column("video_metadata_json", sa.Text()),
        sa.Column("variants_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("processing_json", sa.Text()),
        sa.Column("processing_error", sa.Text()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_media_record_uploaded_by", "media_record", ["uploaded_by"])
    op.create_index("ix_media_record_created_at", "media_record", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_media_record_created_at", table_name="media_record")
    op.drop_index("ix_media_record_uploaded_by", table_name="media_record")
    op.drop_table("media_record")
