"""Version status transitions.

Workers coordinate only through status columns on cv_version. Every claim is a
single conditional UPDATE, so two worker instances racing for the same row
cannot both win. Status changes are mirrored onto the CV's version history in
the same transaction.
"""

import logging
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from cvworker.models import CvVersion, CvVersionSummary

logger = logging.getLogger(__name__)


async def try_claim(
    session: AsyncSession,
    version_id: UUID,
    status_column: InstrumentedAttribute,
    from_statuses: Iterable,
    to_status,
    **values: Any,
) -> bool:
    """
    Atomically move a version from one of `from_statuses` to `to_status`.

    Extra column values are written in the same statement. Commits.

    Returns:
        True if this caller won the row, False if its status had already moved on
    """
    result = await session.execute(
        update(CvVersion)
        .where(CvVersion.id == version_id, status_column.in_(list(from_statuses)))
        .values({status_column.key: to_status, **values})
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    claimed = result.rowcount == 1
    if not claimed:
        logger.debug(
            f"Claim {status_column.key} -> {to_status.value} lost for version {version_id}"
        )
    return claimed


async def update_version(session: AsyncSession, version_id: UUID, **values: Any) -> None:
    """Unconditionally write columns of a version the caller owns. Does not commit."""
    await session.execute(
        update(CvVersion)
        .where(CvVersion.id == version_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def mirror_to_cv(session: AsyncSession, cv_id: UUID, version_id: UUID, **values: Any) -> None:
    """Copy status columns onto the CV's history entry for this version. Does not commit."""
    result = await session.execute(
        update(CvVersionSummary)
        .where(CvVersionSummary.cv_id == cv_id, CvVersionSummary.version_id == version_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning(f"CV {cv_id} has no history entry for version {version_id}")


async def record_version_state(
    session: AsyncSession,
    cv_id: UUID,
    version_id: UUID,
    version_values: dict[str, Any],
    summary_values: dict[str, Any],
) -> None:
    """Write a version's state and its mirrored copy, then commit both together."""
    await update_version(session, version_id, **version_values)
    await mirror_to_cv(session, cv_id, version_id, **summary_values)
    await session.commit()
