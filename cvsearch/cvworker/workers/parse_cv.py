"""Worker that turns uploaded CV files into parsed entities."""

import asyncio
import logging
from uuid import uuid4

from sqlalchemy import Row, delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cvworker.clock import utcnow
from cvworker.config import settings
from cvworker.models import CvEntity, CvVersion, EntitySource, ParseStatus
from cvworker.schemas import ParsedEntity, ParseSummary
from cvworker.services.extraction import extract_text
from cvworker.services.section_parser import deduplicate_entities, extract_entities
from cvworker.services.storage import BlobStore, body_to_bytes, build_blob_store
from cvworker.services.version_state import (
    mirror_to_cv,
    record_version_state,
    try_claim,
)
from cvworker.workers.base import BaseWorker

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50

RETRYABLE_STATUSES = [ParseStatus.PENDING, ParseStatus.ERROR]
FORCE_STATUSES = [ParseStatus.PENDING, ParseStatus.ERROR, ParseStatus.PARSED]


class CvParseWorker(BaseWorker):
    """pending -> processing -> parsed | error; error versions are retried on the next run."""

    name = "parse"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        blob_store: BlobStore | None = None,
        batch_size: int | None = None,
        parser_version: str | None = None,
        force: bool = False,
    ):
        super().__init__(session_factory)
        self.blob_store = blob_store
        self.batch_size = max(1, min(batch_size or settings.parse_batch_size, MAX_BATCH_SIZE))
        self.parser_version = parser_version or settings.parser_version
        self.force = force

    @property
    def eligible_statuses(self) -> list[ParseStatus]:
        return FORCE_STATUSES if self.force else RETRYABLE_STATUSES

    def has_more_work(self, summary: ParseSummary) -> bool:
        # Forced runs would loop over already-parsed versions forever, and failed
        # versions are reselected at once
        return (
            not self.force
            and summary.parsed > 0
            and summary.processed + summary.skipped >= self.batch_size
        )

    async def process_batch(self, session: AsyncSession) -> ParseSummary:
        summary = ParseSummary()

        if self.blob_store is None:
            self.blob_store = build_blob_store(settings)

        if self.force:
            selector = CvVersion.parse_status != ParseStatus.PROCESSING
        else:
            selector = CvVersion.parse_status.in_(RETRYABLE_STATUSES)

        result = await session.execute(
            select(
                CvVersion.id,
                CvVersion.cv_id,
                CvVersion.object_key,
                CvVersion.content_type,
                CvVersion.original_filename,
            )
            .where(selector)
            .order_by(
                CvVersion.parsed_at.asc().nulls_first(),
                CvVersion.created_at,
                CvVersion.id,
            )
            .limit(self.batch_size)
        )
        versions = list(result.all())

        for version in versions:
            await self._process_version(session, version, summary)

        return summary

    async def _process_version(
        self,
        session: AsyncSession,
        version: Row,
        summary: ParseSummary,
    ) -> None:
        claimed = await try_claim(
            session,
            version.id,
            CvVersion.parse_status,
            self.eligible_statuses,
            ParseStatus.PROCESSING,
            parse_error=None,
        )
        if not claimed:
            summary.skipped += 1
            return

        summary.processed += 1

        await mirror_to_cv(
            session,
            version.cv_id,
            version.id,
            parse_status=ParseStatus.PROCESSING,
            parsed_at=None,
        )
        await session.commit()

        try:
            entities = await self._parse(version)
            completed_at = utcnow()

            # Full replace of parser output; manual entities stay
            await session.execute(
                delete(CvEntity).where(
                    CvEntity.cv_id == version.cv_id,
                    CvEntity.version_id == version.id,
                    CvEntity.source == EntitySource.PARSER,
                )
            )
            session.add_all(
                [
                    CvEntity(
                        id=uuid4(),
                        cv_id=version.cv_id,
                        version_id=version.id,
                        entity_type=entity.entity_type,
                        label=entity.label,
                        confidence=entity.confidence,
                        source=EntitySource.PARSER,
                        entity_metadata=entity.metadata,
                        embedding=entity.embedding,
                        created_at=completed_at,
                        updated_at=completed_at,
                    )
                    for entity in entities
                ]
            )

            await record_version_state(
                session,
                version.cv_id,
                version.id,
                version_values={
                    "parse_status": ParseStatus.PARSED,
                    "parsed_at": completed_at,
                    "parse_error": None,
                },
                summary_values={"parse_status": ParseStatus.PARSED, "parsed_at": completed_at},
            )
            summary.parsed += 1
            logger.info(
                f"Parsed version {version.id} of CV {version.cv_id}: {len(entities)} entities"
            )

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.exception(f"Failed to parse version {version.id} for CV {version.cv_id}: {e}")

            # Drop any half-written entity replacement before recording the failure
            await session.rollback()
            await record_version_state(
                session,
                version.cv_id,
                version.id,
                version_values={"parse_status": ParseStatus.ERROR, "parse_error": message},
                summary_values={"parse_status": ParseStatus.ERROR, "parsed_at": None},
            )
            summary.failed += 1

    async def _parse(self, version: Row) -> list[ParsedEntity]:
        """Download, extract and parse one version."""
        body = await self.blob_store.get_object(version.object_key)
        data = await body_to_bytes(body)

        # pdfminer / python-docx are blocking
        text = await asyncio.to_thread(
            extract_text,
            version.content_type,
            data,
            version.original_filename,
        )
        logger.debug(f"Extracted {len(text)} characters from {version.original_filename}")

        return deduplicate_entities(extract_entities(text, self.parser_version))
