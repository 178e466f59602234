"""Tests for scrape job lifecycle transitions."""

import pytest

from src.worker.job_manager import (
    InvalidJobTransition,
    JobLifecycleManager,
    JobNotFoundError,
    JobStatus,
)

URL = "https://www.amazon.com/dp/B0TESTASIN"


@pytest.fixture
def jobs(session_factory):
    return JobLifecycleManager(session_factory)


@pytest.mark.asyncio
async def test_new_job_is_pending(jobs):
    job_id = await jobs.create(URL, "user-1")

    job = await jobs.get(job_id)
    assert job.status == JobStatus.PENDING.value
    assert job.url == URL
    assert job.user_id == "user-1"
    assert job.platform is None
    assert job.started_at is None
    assert job.completed_at is None


@pytest.mark.asyncio
async def test_successful_lifecycle(jobs):
    job_id = await jobs.create(URL, "user-1")

    await jobs.mark_processing(job_id)
    await jobs.set_platform(job_id, "amazon")
    processing = await jobs.get(job_id)
    assert processing.status == "processing"
    assert processing.started_at is not None
    assert processing.platform == "amazon"

    await jobs.complete(job_id, "product-123")
    job = await jobs.get(job_id)
    assert job.status == "completed"
    assert job.product_id == "product-123"
    assert job.completed_at is not None
    assert job.error_message is None


@pytest.mark.asyncio
async def test_failed_job_records_error(jobs):
    job_id = await jobs.create(URL, "user-1")
    await jobs.mark_processing(job_id)

    await jobs.fail(job_id, "Unsupported platform for URL", "UNSUPPORTED_PLATFORM")

    job = await jobs.get(job_id)
    assert job.status == "failed"
    assert job.error_message == "Unsupported platform for URL"
    assert job.error_code == "UNSUPPORTED_PLATFORM"
    assert job.completed_at is not None
    assert job.product_id is None


@pytest.mark.asyncio
async def test_pending_job_can_fail_directly(jobs):
    job_id = await jobs.create(URL, "user-1")

    await jobs.fail(job_id, "aborted", "UNKNOWN_ERROR")

    assert (await jobs.get(job_id)).status == "failed"


@pytest.mark.asyncio
async def test_long_error_messages_are_truncated(jobs):
    job_id = await jobs.create(URL, "user-1")

    await jobs.fail(job_id, "x" * 2000, "UNKNOWN_ERROR")

    assert len((await jobs.get(job_id)).error_message) == 500


@pytest.mark.asyncio
async def test_cannot_complete_pending_job(jobs):
    job_id = await jobs.create(URL, "user-1")

    with pytest.raises(InvalidJobTransition):
        await jobs.complete(job_id, "product-123")


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["completed", "failed"])
async def test_terminal_states_are_final(jobs, terminal):
    job_id = await jobs.create(URL, "user-1")
    await jobs.mark_processing(job_id)
    if terminal == "completed":
        await jobs.complete(job_id, "product-123")
    else:
        await jobs.fail(job_id, "boom", "UNKNOWN_ERROR")

    with pytest.raises(InvalidJobTransition):
        await jobs.mark_processing(job_id)
    with pytest.raises(InvalidJobTransition):
        await jobs.fail(job_id, "again", "UNKNOWN_ERROR")
    with pytest.raises(InvalidJobTransition):
        await jobs.set_platform(job_id, "shopify")

    assert (await jobs.get(job_id)).status == terminal


@pytest.mark.asyncio
async def test_unknown_job_id(jobs):
    assert await jobs.get("missing") is None
    with pytest.raises(JobNotFoundError):
        await jobs.mark_processing("missing")
