import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cvworker.models import VirusScanStatus

logger = logging.getLogger(__name__)

TERMINAL_SCAN_STATUSES = (VirusScanStatus.CLEAN, VirusScanStatus.INFECTED, VirusScanStatus.ERROR)


@dataclass
class ScanResult:
    """Outcome of scanning one uploaded file."""

    status: VirusScanStatus
    message: str | None = None

    def __post_init__(self):
        if self.status not in TERMINAL_SCAN_STATUSES:
            raise ValueError(f"Scan engines must report a terminal status, got {self.status}")


class ScanEngine(ABC):
    """Antivirus integration point."""

    @abstractmethod
    async def scan(self, object_key: str, checksum: str) -> ScanResult:
        """Scan the stored object. Raise on engine failure."""


class StubScanEngine(ScanEngine):
    """Reports every file as clean so downstream consumers can rely on the status."""

    # TODO: add a ClamAV (clamd) engine and select it from settings.
    async def scan(self, object_key: str, checksum: str) -> ScanResult:
        logger.debug(f"Stub scan of {object_key} ({checksum})")
        return ScanResult(
            status=VirusScanStatus.CLEAN,
            message=f"No threats detected for {object_key}",
        )
