import asyncio
import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cvworker.config import settings

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Base class for batch workers.

    A worker run opens one session, selects a bounded batch of candidate
    records, claims each one with a conditional update and writes back its
    outcome. Per-record failures are handled inside `process_batch`;
    anything that escapes (e.g. the database is unreachable) aborts the run.
    """

    name: str = "worker"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self.session_factory = session_factory
        self.running = False

    def _get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self.session_factory is None:
            from cvworker.db import async_session_factory

            self.session_factory = async_session_factory
        return self.session_factory

    @abstractmethod
    async def process_batch(self, session: AsyncSession) -> BaseModel:
        """Process one batch and return its summary. Implement in subclass."""

    async def run_once(self) -> BaseModel:
        """Run a single batch in a fresh session."""
        async with self._get_session_factory()() as session:
            summary = await self.process_batch(session)

        logger.info(f"{self.name} run complete: {summary.model_dump()}")
        return summary

    def has_more_work(self, summary: BaseModel) -> bool:
        """Whether to start the next batch immediately instead of sleeping."""
        return False

    async def run(self) -> None:
        """Run the worker loop continuously."""
        self.running = True
        logger.info(f"Starting {self.__class__.__name__} worker")

        while self.running:
            try:
                summary = await self.run_once()

                if not self.has_more_work(summary):
                    await asyncio.sleep(settings.worker_poll_interval_seconds)
            except Exception as e:
                logger.exception(f"Worker error: {e}")
                await asyncio.sleep(settings.worker_poll_interval_seconds)

    def stop(self) -> None:
        """Stop the worker loop."""
        self.running = False
        logger.info(f"Stopping {self.__class__.__name__} worker")
