from typing import Any

from pydantic import BaseModel, Field, field_validator

from cvworker.models import EntitySource, EntityType

# ============================================================================
# Entities
# ============================================================================


class ParsedEntity(BaseModel):
    """An entity produced by the section parser, not yet persisted."""

    entity_type: EntityType
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: EntitySource = EntitySource.PARSER
    metadata: dict[str, Any] = {}
    embedding: list[float] | None = None


class ManualEntityInput(BaseModel):
    """An entity entered or corrected by hand."""

    entity_type: EntityType
    label: str
    confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    metadata: dict[str, Any] = {}

    @field_validator("label")
    @classmethod
    def label_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("label must not be empty")
        return value


# ============================================================================
# Search suggestions
# ============================================================================


class SuggestionCandidate(BaseModel):
    entity_type: EntityType
    label: str
    embedding: list[float] | None = None


class Suggestion(BaseModel):
    entity_type: EntityType
    label: str
    score: float


# ============================================================================
# Worker summaries
# ============================================================================


class VirusScanSummary(BaseModel):
    processed: int = 0
    queued: int = 0
    scanned: int = 0
    clean: int = 0
    infected: int = 0
    errors: int = 0


class ParseSummary(BaseModel):
    processed: int = 0
    parsed: int = 0
    failed: int = 0
    skipped: int = 0


class RetentionSummary(BaseModel):
    processed: int = 0
    flagged: int = 0
    purged: int = 0
    restored: int = 0
    skipped_legal_hold: int = 0
    errors: int = 0
