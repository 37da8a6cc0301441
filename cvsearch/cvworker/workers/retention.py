"""Retention sweep: flags stale CVs, marks long-stale ones purged, restores refreshed ones.

Purging is a status transition only. Deleting the stored files and records
of a purged CV is left to a separate process. A CV that is already purged
keeps the timestamp of its first purge: later sweeps neither rewrite
`retention_purged_at` nor count the CV as purged again.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import Row, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cvworker.clock import to_naive_utc, utcnow
from cvworker.config import settings
from cvworker.models import ConsultantConsent, Cv, RetentionStatus
from cvworker.schemas import RetentionSummary
from cvworker.workers.base import BaseWorker

logger = logging.getLogger(__name__)

RETENTION_REASON = "retention_policy"


@dataclass
class RetentionState:
    """Retention columns of a CV, keyed by the column they are stored in."""

    retention_status: RetentionStatus = RetentionStatus.ACTIVE
    retention_flagged_at: datetime | None = None
    retention_purge_scheduled_for: datetime | None = None
    retention_purged_at: datetime | None = None
    retention_warning_sent_at: datetime | None = None
    retention_reason: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> "RetentionState":
        return cls(
            retention_status=row.retention_status or RetentionStatus.ACTIVE,
            retention_flagged_at=to_naive_utc(row.retention_flagged_at),
            retention_purge_scheduled_for=to_naive_utc(row.retention_purge_scheduled_for),
            retention_purged_at=to_naive_utc(row.retention_purged_at),
            retention_warning_sent_at=to_naive_utc(row.retention_warning_sent_at),
            retention_reason=row.retention_reason,
        )


def calculate_purge_schedule(last_updated: datetime, purge_days: int) -> datetime:
    return last_updated + timedelta(days=purge_days)


def compute_retention_state(
    current: RetentionState,
    last_updated: datetime,
    now: datetime,
    warning_days: int,
    purge_days: int,
) -> RetentionState:
    """
    Compute the retention state a CV should have.

    Returns `current` unchanged (by value) when no transition is due, so
    callers can skip the write.
    """
    if last_updated <= now - timedelta(days=purge_days):
        if current.retention_status == RetentionStatus.PURGED and current.retention_purged_at:
            # Already purged: keep the original purge timestamp stable
            return current
        return RetentionState(
            retention_status=RetentionStatus.PURGED,
            retention_flagged_at=current.retention_flagged_at,
            retention_purge_scheduled_for=current.retention_purge_scheduled_for
            or calculate_purge_schedule(last_updated, purge_days),
            retention_purged_at=now,
            retention_warning_sent_at=current.retention_warning_sent_at,
            retention_reason=RETENTION_REASON,
        )

    if last_updated <= now - timedelta(days=warning_days):
        purge_scheduled_for = calculate_purge_schedule(last_updated, purge_days)
        up_to_date = (
            current.retention_status == RetentionStatus.FLAGGED
            and current.retention_flagged_at is not None
            and current.retention_purge_scheduled_for == purge_scheduled_for
        )
        if up_to_date:
            return current
        return RetentionState(
            retention_status=RetentionStatus.FLAGGED,
            retention_flagged_at=current.retention_flagged_at or now,
            retention_purge_scheduled_for=purge_scheduled_for,
            retention_purged_at=None,
            retention_warning_sent_at=current.retention_warning_sent_at or now,
            retention_reason=RETENTION_REASON,
        )

    if current.retention_status != RetentionStatus.ACTIVE:
        return RetentionState()

    return current


class RetentionWorker(BaseWorker):
    """Single pass over every CV, applying the warning and purge age thresholds."""

    name = "retention"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        warning_days: int | None = None,
        purge_days: int | None = None,
        now: datetime | None = None,
        page_size: int | None = None,
    ):
        super().__init__(session_factory)
        self.warning_days = warning_days or settings.cv_retention_warning_days
        self.purge_days = purge_days or settings.cv_retention_purge_days
        self.now = now
        self.page_size = page_size or settings.retention_page_size

        if self.purge_days <= self.warning_days:
            raise ValueError("purge_days must be greater than warning_days")

    async def process_batch(self, session: AsyncSession) -> RetentionSummary:
        summary = RetentionSummary()
        now = to_naive_utc(self.now) if self.now else utcnow()
        last_id: UUID | None = None

        logger.info(
            f"Retention sweep at {now.isoformat()} "
            f"(warning={self.warning_days}d, purge={self.purge_days}d)"
        )

        while True:
            query = (
                select(
                    Cv.id,
                    Cv.created_at,
                    Cv.updated_at,
                    Cv.retention_status,
                    Cv.retention_flagged_at,
                    Cv.retention_purge_scheduled_for,
                    Cv.retention_purged_at,
                    Cv.retention_warning_sent_at,
                    Cv.retention_reason,
                )
                .order_by(Cv.id)
                .limit(self.page_size)
            )
            if last_id is not None:
                query = query.where(Cv.id > last_id)

            rows = list((await session.execute(query)).all())
            if not rows:
                break
            last_id = rows[-1].id

            held = await self._legal_hold_cv_ids(session, [row.id for row in rows])

            for row in rows:
                summary.processed += 1

                if row.id in held:
                    summary.skipped_legal_hold += 1
                    continue

                try:
                    await self._apply(session, row, now, summary)
                except Exception as e:
                    summary.errors += 1
                    logger.exception(f"Data retention processing failed for CV {row.id}: {e}")
                    await session.rollback()

        return summary

    async def _legal_hold_cv_ids(self, session: AsyncSession, cv_ids: list[UUID]) -> set[UUID]:
        result = await session.execute(
            select(ConsultantConsent.cv_id).where(
                ConsultantConsent.cv_id.in_(cv_ids),
                ConsultantConsent.legal_hold_active.is_(True),
            )
        )
        return set(result.scalars().all())

    async def _apply(
        self,
        session: AsyncSession,
        row: Row,
        now: datetime,
        summary: RetentionSummary,
    ) -> None:
        last_updated = to_naive_utc(row.updated_at or row.created_at)
        current = RetentionState.from_row(row)
        target = compute_retention_state(
            current, last_updated, now, self.warning_days, self.purge_days
        )

        if target == current:
            return

        await session.execute(update(Cv).where(Cv.id == row.id).values(**asdict(target)))
        await session.commit()

        if target.retention_status == RetentionStatus.PURGED:
            summary.purged += 1
            logger.info(f"CV {row.id} purged (last updated {last_updated.isoformat()})")
        elif target.retention_status == RetentionStatus.FLAGGED:
            summary.flagged += 1
            logger.info(
                f"CV {row.id} flagged, purge scheduled for "
                f"{target.retention_purge_scheduled_for.isoformat()}"
            )
        else:
            summary.restored += 1
            logger.info(f"CV {row.id} restored to active")
