"""Worker that moves uploaded CV versions through the virus scan state machine."""

import logging

from sqlalchemy import Row, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cvworker.clock import utcnow
from cvworker.config import settings
from cvworker.models import CvVersion, VirusScanStatus
from cvworker.schemas import VirusScanSummary
from cvworker.services.antivirus import ScanEngine, StubScanEngine
from cvworker.services.version_state import record_version_state, try_claim
from cvworker.workers.base import BaseWorker

logger = logging.getLogger(__name__)

SELECTABLE_STATUSES = [VirusScanStatus.PENDING, VirusScanStatus.QUEUED]


class VirusScanWorker(BaseWorker):
    """pending -> queued -> scanning -> clean | infected | error"""

    name = "virus-scan"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        scan_engine: ScanEngine | None = None,
        batch_size: int | None = None,
    ):
        super().__init__(session_factory)
        self.scan_engine = scan_engine or StubScanEngine()
        self.batch_size = batch_size or settings.virus_scan_batch_size

    def has_more_work(self, summary: VirusScanSummary) -> bool:
        return summary.processed >= self.batch_size

    async def process_batch(self, session: AsyncSession) -> VirusScanSummary:
        summary = VirusScanSummary()

        result = await session.execute(
            select(
                CvVersion.id,
                CvVersion.cv_id,
                CvVersion.object_key,
                CvVersion.checksum,
                CvVersion.virus_scan_status,
            )
            .where(CvVersion.virus_scan_status.in_(SELECTABLE_STATUSES))
            .order_by(CvVersion.created_at, CvVersion.id)
            .limit(self.batch_size)
        )
        # Plain rows: they stay readable after a per-record rollback
        versions = list(result.all())
        summary.processed = len(versions)

        for version in versions:
            await self._process_version(session, version, summary)

        return summary

    async def _process_version(
        self,
        session: AsyncSession,
        version: Row,
        summary: VirusScanSummary,
    ) -> None:
        version_id, cv_id = version.id, version.cv_id
        object_key, checksum = version.object_key, version.checksum

        if version.virus_scan_status == VirusScanStatus.PENDING:
            queued = await try_claim(
                session,
                version_id,
                CvVersion.virus_scan_status,
                [VirusScanStatus.PENDING],
                VirusScanStatus.QUEUED,
                virus_queued_at=utcnow(),
                virus_scan_result_message=None,
            )
            if not queued:
                # Another worker picked it up
                return
            summary.queued += 1

        scanning = await try_claim(
            session,
            version_id,
            CvVersion.virus_scan_status,
            [VirusScanStatus.QUEUED, VirusScanStatus.PENDING],
            VirusScanStatus.SCANNING,
        )
        if not scanning:
            return

        try:
            scan_result = await self.scan_engine.scan(object_key, checksum)
            completed_at = utcnow()

            await record_version_state(
                session,
                cv_id,
                version_id,
                version_values={
                    "virus_scan_status": scan_result.status,
                    "virus_scanned_at": completed_at,
                    "virus_scan_result_message": scan_result.message,
                },
                summary_values={
                    "virus_scan_status": scan_result.status,
                    "virus_scanned_at": completed_at,
                },
            )

            summary.scanned += 1
            if scan_result.status == VirusScanStatus.CLEAN:
                summary.clean += 1
            elif scan_result.status == VirusScanStatus.INFECTED:
                summary.infected += 1
                logger.warning(
                    f"Version {version_id} of CV {cv_id} is infected: {scan_result.message}"
                )

        except Exception as e:
            logger.exception(f"Virus scan failed for version {version_id}: {e}")
            await session.rollback()
            await record_version_state(
                session,
                cv_id,
                version_id,
                version_values={
                    "virus_scan_status": VirusScanStatus.ERROR,
                    "virus_scan_result_message": str(e) or e.__class__.__name__,
                },
                summary_values={"virus_scan_status": VirusScanStatus.ERROR},
            )
            summary.errors += 1
