"""Scrape job lifecycle: pending -> processing -> completed | failed."""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import ScrapeJob

logger = logging.getLogger(__name__)

# Stored error messages are truncated to this length
MAX_ERROR_LENGTH = 500


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class JobNotFoundError(LookupError):
    """No job with the given id."""


class InvalidJobTransition(RuntimeError):
    """Requested status change isn't allowed from the job's current status."""

    def __init__(self, job_id: str, current: str, target: JobStatus):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id} cannot move from {current} to {target.value}")


class JobLifecycleManager:
    """
    Persist scrape jobs and their status transitions.

    Each operation runs in its own session and commits immediately, so a
    job's last recorded status survives failures later in the pipeline.
    Terminal states (completed, failed) are final.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, url: str, user_id: str) -> str:
        """Record a new pending job and return its id."""
        async with self._session_factory() as db:
            job = ScrapeJob(
                id=str(uuid4()),
                url=url,
                user_id=user_id,
                status=JobStatus.PENDING.value,
                created_at=datetime.utcnow(),
            )
            db.add(job)
            await db.commit()
            logger.info(f"Created scrape job {job.id} for {url}")
            return job.id

    async def mark_processing(self, job_id: str) -> None:
        async with self._session_factory() as db:
            job = await self._load(db, job_id)
            self._transition(job, JobStatus.PROCESSING)
            job.started_at = datetime.utcnow()
            await db.commit()

    async def set_platform(self, job_id: str, platform: str) -> None:
        """Record the detected platform on a job that hasn't finished."""
        async with self._session_factory() as db:
            job = await self._load(db, job_id)
            if JobStatus(job.status) in (JobStatus.COMPLETED, JobStatus.FAILED):
                raise InvalidJobTransition(job_id, job.status, JobStatus(job.status))
            job.platform = platform
            await db.commit()

    async def complete(self, job_id: str, product_id: str) -> None:
        async with self._session_factory() as db:
            job = await self._load(db, job_id)
            self._transition(job, JobStatus.COMPLETED)
            job.product_id = product_id
            job.completed_at = datetime.utcnow()
            await db.commit()
            logger.info(f"Scrape job {job_id} completed with product {product_id}")

    async def fail(self, job_id: str, message: str, code: Optional[str] = None) -> None:
        """
        Move a job to failed, recording the error.

        Args:
            job_id: Job to fail
            message: Human-readable error message
            code: Machine-readable error code
        """
        async with self._session_factory() as db:
            job = await self._load(db, job_id)
            self._transition(job, JobStatus.FAILED)
            job.error_message = (message or "")[:MAX_ERROR_LENGTH]
            job.error_code = code
            job.completed_at = datetime.utcnow()
            await db.commit()
            logger.warning(f"Scrape job {job_id} failed [{code}]: {message}")

    async def get(self, job_id: str) -> Optional[ScrapeJob]:
        async with self._session_factory() as db:
            return await db.get(ScrapeJob, job_id)

    @staticmethod
    async def _load(db: AsyncSession, job_id: str) -> ScrapeJob:
        job = await db.get(ScrapeJob, job_id)
        if job is None:
            raise JobNotFoundError(f"Scrape job {job_id} not found")
        return job

    @staticmethod
    def _transition(job: ScrapeJob, target: JobStatus) -> None:
        current = JobStatus(job.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidJobTransition(job.id, job.status, target)
        job.status = target.value
