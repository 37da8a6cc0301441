"""
Shared fixtures for worker and service tests.

Every test gets a fresh in-memory SQLite database created from the ORM
metadata, so workers run against the same tables and claims as in production.
"""

import os

os.environ.setdefault("CVSEARCH_DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timedelta  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cvworker.models import (  # noqa: E402
    Base,
    ConsultantConsent,
    Cv,
    CvVersion,
    CvVersionSummary,
    ParseStatus,
    VirusScanStatus,
)
from cvworker.services.antivirus import ScanEngine, ScanResult  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


async def create_cv(
    session,
    *,
    consultant_name: str = "Ada Lovelace",
    created_at: datetime = BASE_TIME,
    updated_at: datetime | None = None,
    **retention,
) -> Cv:
    cv = Cv(
        id=uuid4(),
        consultant_name=consultant_name,
        created_at=created_at,
        updated_at=updated_at,
        **retention,
    )
    session.add(cv)
    await session.commit()
    return cv


async def add_version(
    session,
    cv: Cv,
    *,
    object_key: str | None = None,
    content_type: str = "text/plain",
    original_filename: str = "cv.txt",
    created_at: datetime = BASE_TIME,
    virus_scan_status: VirusScanStatus = VirusScanStatus.PENDING,
    parse_status: ParseStatus = ParseStatus.PENDING,
    parsed_at: datetime | None = None,
) -> CvVersion:
    """Add a version plus its history entry and make it the CV's latest."""
    version_id = uuid4()
    object_key = object_key or f"cvs/{cv.id}/{version_id}.txt"
    checksum = uuid4().hex

    version = CvVersion(
        id=version_id,
        cv_id=cv.id,
        object_key=object_key,
        checksum=checksum,
        size_bytes=1024,
        content_type=content_type,
        original_filename=original_filename,
        created_at=created_at,
        virus_scan_status=virus_scan_status,
        parse_status=parse_status,
        parsed_at=parsed_at,
    )
    history = CvVersionSummary(
        id=uuid4(),
        cv_id=cv.id,
        version_id=version_id,
        object_key=object_key,
        checksum=checksum,
        size_bytes=1024,
        content_type=content_type,
        created_at=created_at,
        virus_scan_status=virus_scan_status,
        parse_status=parse_status,
        parsed_at=parsed_at,
    )
    session.add_all([version, history])
    cv.latest_version_id = version_id
    await session.commit()
    return version


async def set_legal_hold(session, cv: Cv, active: bool = True) -> ConsultantConsent:
    consent = ConsultantConsent(
        id=uuid4(),
        cv_id=cv.id,
        legal_hold_active=active,
        legal_hold_reason="Pending litigation" if active else None,
        legal_hold_set_at=BASE_TIME if active else None,
        legal_hold_set_by="compliance@example.com" if active else None,
        updated_at=BASE_TIME,
    )
    session.add(consent)
    await session.commit()
    return consent


def days_before(reference: datetime, days: int) -> datetime:
    return reference - timedelta(days=days)


# ============================================================================
# Fakes
# ============================================================================


class InMemoryBlobStore:
    """Blob store backed by a dict of object key to body."""

    def __init__(self, objects: dict | None = None):
        self.objects = dict(objects or {})
        self.requested: list[str] = []

    async def get_object(self, key: str):
        self.requested.append(key)
        if key not in self.objects:
            raise FileNotFoundError(f"File not found: {key}")
        return self.objects[key]


class RecordingScanEngine(ScanEngine):
    """Reports objects in `infected` as infected and everything else as clean."""

    def __init__(self, infected: set[str] | None = None):
        self.infected = infected or set()
        self.scanned: list[str] = []

    async def scan(self, object_key: str, checksum: str) -> ScanResult:
        self.scanned.append(object_key)
        if object_key in self.infected:
            return ScanResult(status=VirusScanStatus.INFECTED, message="Eicar-Test-Signature")
        return ScanResult(status=VirusScanStatus.CLEAN, message="OK")


class FailingScanEngine(ScanEngine):
    """Raises for objects in `failing`, reports clean otherwise."""

    def __init__(self, failing: set[str]):
        self.failing = failing

    async def scan(self, object_key: str, checksum: str) -> ScanResult:
        if object_key in self.failing:
            raise ConnectionError("clamd unavailable")
        return ScanResult(status=VirusScanStatus.CLEAN, message="OK")


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


async def load_version(session, version_id: UUID) -> CvVersion:
    return await session.get(CvVersion, version_id, populate_existing=True)


async def load_history(session, cv_id: UUID, version_id: UUID) -> CvVersionSummary:
    result = await session.execute(
        select(CvVersionSummary)
        .where(CvVersionSummary.cv_id == cv_id, CvVersionSummary.version_id == version_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def load_cv(session, cv_id: UUID) -> Cv:
    return await session.get(Cv, cv_id, populate_existing=True)
