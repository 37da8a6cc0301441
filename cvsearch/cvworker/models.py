import enum
from datetime import datetime
from typing import Any
from uuid import UUID

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from cvworker.clock import utcnow
from cvworker.services.embedding import EMBEDDING_DIMENSIONS

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


def _enum(enum_cls: type[enum.Enum]) -> Enum:
    # Persist the lowercase values ("pending"), not the member names.
    return Enum(enum_cls, values_callable=lambda members: [m.value for m in members])


# ============================================================================
# Enums
# ============================================================================


class VirusScanStatus(str, enum.Enum):
    PENDING = "pending"
    QUEUED = "queued"
    SCANNING = "scanning"
    CLEAN = "clean"
    INFECTED = "infected"
    ERROR = "error"


class ParseStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PARSED = "parsed"
    ERROR = "error"


class EntityType(str, enum.Enum):
    SUMMARY = "summary"
    EDUCATION = "education"
    EXPERIENCE = "experience"
    SKILL = "skill"
    LANGUAGE = "language"
    CERTIFICATION = "certification"


class EntitySource(str, enum.Enum):
    PARSER = "parser"
    MANUAL = "manual"


class RetentionStatus(str, enum.Enum):
    ACTIVE = "active"
    FLAGGED = "flagged"
    PURGED = "purged"


class ConsentStatus(str, enum.Enum):
    PENDING = "pending"
    GRANTED = "granted"
    REVOKED = "revoked"


# ============================================================================
# CVs and versions
# ============================================================================


class Cv(Base):
    __tablename__ = "cv"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    consultant_name: Mapped[str] = mapped_column(Text, nullable=False)
    latest_version_id: Mapped[UUID | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    # No onupdate: retention writes must not refresh the age of the record.
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Retention state
    retention_status: Mapped[RetentionStatus] = mapped_column(
        _enum(RetentionStatus), nullable=False, default=RetentionStatus.ACTIVE
    )
    retention_flagged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retention_purge_scheduled_for: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retention_purged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retention_warning_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retention_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    versions: Mapped[list["CvVersion"]] = relationship(back_populates="cv", cascade="all, delete")
    version_history: Mapped[list["CvVersionSummary"]] = relationship(
        back_populates="cv", cascade="all, delete"
    )


class CvVersion(Base):
    __tablename__ = "cv_version"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    cv_id: Mapped[UUID] = mapped_column(ForeignKey("cv.id", ondelete="CASCADE"), nullable=False)
    object_key: Mapped[str] = mapped_column(Text, nullable=False)
    checksum: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_type: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Virus scan state
    virus_scan_status: Mapped[VirusScanStatus] = mapped_column(
        _enum(VirusScanStatus), nullable=False, default=VirusScanStatus.PENDING
    )
    virus_queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    virus_scanned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    virus_scan_result_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Parse state
    parse_status: Mapped[ParseStatus] = mapped_column(
        _enum(ParseStatus), nullable=False, default=ParseStatus.PENDING
    )
    parsed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    parse_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("checksum", name="uq_cv_version_checksum"),
        Index("ix_cv_version_virus_scan", "virus_scan_status", "created_at"),
        Index("ix_cv_version_parse", "parse_status", "parsed_at"),
    )

    # Relationships
    cv: Mapped["Cv"] = relationship(back_populates="versions")


class CvVersionSummary(Base):
    """Per-version status copy kept on the CV so listings need no join."""

    __tablename__ = "cv_version_history"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    cv_id: Mapped[UUID] = mapped_column(ForeignKey("cv.id", ondelete="CASCADE"), nullable=False)
    version_id: Mapped[UUID] = mapped_column(
        ForeignKey("cv_version.id", ondelete="CASCADE"), nullable=False
    )
    object_key: Mapped[str] = mapped_column(Text, nullable=False)
    checksum: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_type: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    virus_scan_status: Mapped[VirusScanStatus] = mapped_column(
        _enum(VirusScanStatus), nullable=False, default=VirusScanStatus.PENDING
    )
    virus_scanned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    parse_status: Mapped[ParseStatus] = mapped_column(
        _enum(ParseStatus), nullable=False, default=ParseStatus.PENDING
    )
    parsed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("cv_id", "version_id", name="uq_cv_version_history"),)

    # Relationships
    cv: Mapped["Cv"] = relationship(back_populates="version_history")


# ============================================================================
# Parsed entities
# ============================================================================


class CvEntity(Base):
    __tablename__ = "cv_entity"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    cv_id: Mapped[UUID] = mapped_column(ForeignKey("cv.id", ondelete="CASCADE"), nullable=False)
    version_id: Mapped[UUID] = mapped_column(
        ForeignKey("cv_version.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[EntityType] = mapped_column(_enum(EntityType), nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[EntitySource] = mapped_column(_enum(EntitySource), nullable=False)
    # "metadata" is reserved on declarative classes
    entity_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JsonType, nullable=False, default=dict
    )
    embedding = mapped_column(Vector(EMBEDDING_DIMENSIONS), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_cv_entity_version", "cv_id", "version_id", "source"),
        Index("ix_cv_entity_type", "entity_type"),
    )


# ============================================================================
# Consent (owned by the web app, read here)
# ============================================================================


class ConsultantConsent(Base):
    __tablename__ = "consultant_consent"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    cv_id: Mapped[UUID] = mapped_column(ForeignKey("cv.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[ConsentStatus] = mapped_column(
        _enum(ConsentStatus), nullable=False, default=ConsentStatus.PENDING
    )
    legal_hold_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    legal_hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    legal_hold_set_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    legal_hold_set_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (UniqueConstraint("cv_id", name="uq_consultant_consent_cv"),)
