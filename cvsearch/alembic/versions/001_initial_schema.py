"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-09-14

"""

from collections.abc import Sequence

import sqlalchemy as sa
from pgvector.sqlalchemy import Vector

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

VIRUS_SCAN_STATUSES = ("pending", "queued", "scanning", "clean", "infected", "error")
PARSE_STATUSES = ("pending", "processing", "parsed", "error")


def upgrade() -> None:
    # Enable pgvector extension
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # Create enums
    op.execute("""
        CREATE TYPE virusscanstatus AS ENUM ('pending', 'queued', 'scanning', 'clean', 'infected', 'error');
        CREATE TYPE parsestatus AS ENUM ('pending', 'processing', 'parsed', 'error');
        CREATE TYPE entitytype AS ENUM ('summary', 'education', 'experience', 'skill', 'language', 'certification');
        CREATE TYPE entitysource AS ENUM ('parser', 'manual');
        CREATE TYPE retentionstatus AS ENUM ('active', 'flagged', 'purged');
        CREATE TYPE consentstatus AS ENUM ('pending', 'granted', 'revoked');
    """)  # noqa: E501

    # cv
    op.create_table(
        "cv",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("consultant_name", sa.Text(), nullable=False),
        sa.Column("latest_version_id", sa.UUID(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "retention_status",
            sa.Enum("active", "flagged", "purged", name="retentionstatus", create_type=False),
            nullable=False,
            server_default="active",
        ),
        sa.Column("retention_flagged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_purge_scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_purged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_warning_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # cv_version
    op.create_table(
        "cv_version",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("cv_id", sa.UUID(), nullable=False),
        sa.Column("object_key", sa.Text(), nullable=False),
        sa.Column("checksum", sa.Text(), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False),
        sa.Column("original_filename", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "virus_scan_status",
            sa.Enum(*VIRUS_SCAN_STATUSES, name="virusscanstatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("virus_queued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("virus_scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("virus_scan_result_message", sa.Text(), nullable=True),
        sa.Column(
            "parse_status",
            sa.Enum(*PARSE_STATUSES, name="parsestatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("parsed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("parse_error", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["cv_id"], ["cv.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("checksum", name="uq_cv_version_checksum"),
    )
    op.create_index("ix_cv_version_virus_scan", "cv_version", ["virus_scan_status", "created_at"])
    op.create_index("ix_cv_version_parse", "cv_version", ["parse_status", "parsed_at"])

    # cv_version_history
    op.create_table(
        "cv_version_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("cv_id", sa.UUID(), nullable=False),
        sa.Column("version_id", sa.UUID(), nullable=False),
        sa.Column("object_key", sa.Text(), nullable=False),
        sa.Column("checksum", sa.Text(), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "virus_scan_status",
            sa.Enum(*VIRUS_SCAN_STATUSES, name="virusscanstatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("virus_scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "parse_status",
            sa.Enum(*PARSE_STATUSES, name="parsestatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("parsed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["cv_id"], ["cv.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["version_id"], ["cv_version.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cv_id", "version_id", name="uq_cv_version_history"),
    )

    # cv_entity
    op.create_table(
        "cv_entity",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("cv_id", sa.UUID(), nullable=False),
        sa.Column("version_id", sa.UUID(), nullable=False),
        sa.Column(
            "entity_type",
            sa.Enum(
                "summary",
                "education",
                "experience",
                "skill",
                "language",
                "certification",
                name="entitytype",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column(
            "source",
            sa.Enum("parser", "manual", name="entitysource", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "metadata",
            sa.dialects.postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("embedding", Vector(256), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["cv_id"], ["cv.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["version_id"], ["cv_version.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cv_entity_version", "cv_entity", ["cv_id", "version_id", "source"])
    op.create_index("ix_cv_entity_type", "cv_entity", ["entity_type"])

    # consultant_consent
    op.create_table(
        "consultant_consent",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("cv_id", sa.UUID(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "granted", "revoked", name="consentstatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("legal_hold_active", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("legal_hold_reason", sa.Text(), nullable=True),
        sa.Column("legal_hold_set_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("legal_hold_set_by", sa.Text(), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["cv_id"], ["cv.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cv_id", name="uq_consultant_consent_cv"),
    )


def downgrade() -> None:
    op.drop_table("consultant_consent")
    op.drop_table("cv_entity")
    op.drop_table("cv_version_history")
    op.drop_table("cv_version")
    op.drop_table("cv")

    op.execute("DROP TYPE consentstatus")
    op.execute("DROP TYPE retentionstatus")
    op.execute("DROP TYPE entitysource")
    op.execute("DROP TYPE entitytype")
    op.execute("DROP TYPE parsestatus")
    op.execute("DROP TYPE virusscanstatus")
    op.execute("DROP EXTENSION IF EXISTS vector")
