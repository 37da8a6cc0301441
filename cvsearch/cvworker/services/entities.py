"""Entity maintenance outside the automated parser: manual corrections and re-parse requests."""

import logging
from collections.abc import Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cvworker.clock import utcnow
from cvworker.models import Cv, CvEntity, CvVersion, EntitySource, ParseStatus
from cvworker.schemas import ManualEntityInput
from cvworker.services.embedding import embed
from cvworker.services.version_state import record_version_state

logger = logging.getLogger(__name__)


async def resolve_cv_version(
    session: AsyncSession,
    cv_id: UUID,
    version_id: UUID | None = None,
) -> CvVersion:
    """Load a version of a CV, defaulting to the CV's latest version."""
    cv = await session.get(Cv, cv_id)
    if not cv:
        raise ValueError(f"CV {cv_id} not found")

    version_id = version_id or cv.latest_version_id
    if not version_id:
        raise ValueError(f"CV {cv_id} does not have an uploaded version to parse")

    result = await session.execute(
        select(CvVersion).where(CvVersion.id == version_id, CvVersion.cv_id == cv.id)
    )
    version = result.scalar_one_or_none()
    if not version:
        raise ValueError(f"Version {version_id} not found for CV {cv_id}")

    return version


async def request_reparse(
    session: AsyncSession,
    cv_id: UUID,
    version_id: UUID | None = None,
) -> UUID:
    """
    Queue a version for the parse worker by resetting it to pending.

    Returns:
        The id of the queued version
    """
    version = await resolve_cv_version(session, cv_id, version_id)

    await record_version_state(
        session,
        version.cv_id,
        version.id,
        version_values={
            "parse_status": ParseStatus.PENDING,
            "parsed_at": None,
            "parse_error": None,
        },
        summary_values={"parse_status": ParseStatus.PENDING, "parsed_at": None},
    )
    logger.info(f"Queued version {version.id} of CV {cv_id} for parsing")
    return version.id


async def replace_manual_entities(
    session: AsyncSession,
    cv_id: UUID,
    version_id: UUID | None,
    entities: Sequence[ManualEntityInput | dict],
) -> list[CvEntity]:
    """
    Replace the manual entities of a version. Parser entities are left alone.

    The version is marked parsed, since its entity set is now curated.

    Returns:
        All entities of the version, highest confidence first
    """
    inputs = [
        entity if isinstance(entity, ManualEntityInput) else ManualEntityInput(**entity)
        for entity in entities
    ]
    version = await resolve_cv_version(session, cv_id, version_id)
    now = utcnow()

    await session.execute(
        delete(CvEntity).where(
            CvEntity.cv_id == version.cv_id,
            CvEntity.version_id == version.id,
            CvEntity.source == EntitySource.MANUAL,
        )
    )

    session.add_all(
        [
            CvEntity(
                id=uuid4(),
                cv_id=version.cv_id,
                version_id=version.id,
                entity_type=item.entity_type,
                label=item.label,
                confidence=item.confidence,
                source=EntitySource.MANUAL,
                entity_metadata={**item.metadata, "manual": True},
                embedding=embed(item.label),
                created_at=now,
                updated_at=now,
            )
            for item in inputs
        ]
    )

    await record_version_state(
        session,
        version.cv_id,
        version.id,
        version_values={"parse_status": ParseStatus.PARSED, "parsed_at": now, "parse_error": None},
        summary_values={"parse_status": ParseStatus.PARSED, "parsed_at": now},
    )
    logger.info(f"Saved {len(inputs)} manual entities for version {version.id}")

    result = await session.execute(
        select(CvEntity)
        .where(CvEntity.cv_id == version.cv_id, CvEntity.version_id == version.id)
        .order_by(CvEntity.confidence.desc(), CvEntity.label)
    )
    return list(result.scalars().all())
