"""Scrape orchestration: URL in, persisted canonical product out."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src import metrics
from src.db.product_store import PersistenceError, ProductStore
from src.ingest.base import ErrorCode, Platform, ScraperError
from src.ingest.platform_detector import PlatformDetector
from src.ingest.registry import ExtractorRegistry
from src.ingest.retry import extract_with_retries
from src.ingest.urls import is_valid_url, normalize_url
from src.logging_config import get_logger
from src.normalize.processor import CanonicalProduct, ProductNormalizer
from src.worker.job_manager import JobLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Outcome of a successful scrape."""

    product_id: str
    job_id: str
    product: CanonicalProduct
    created: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "job_id": self.job_id,
            "product": self.product.to_dict(),
        }


class ScrapingService:
    """
    Runs one product URL through validation, detection, extraction,
    normalization and persistence, tracking the attempt as a ScrapeJob.

    Every failure after the job exists is written to the job before it
    reaches the caller, so the job row always ends in a terminal state.
    """

    def __init__(
        self,
        registry: ExtractorRegistry,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        detector: Optional[PlatformDetector] = None,
        normalizer: Optional[ProductNormalizer] = None,
        retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        if session_factory is None:
            from src.db.session import AsyncSessionLocal

            session_factory = AsyncSessionLocal

        self.registry = registry
        self.detector = detector or PlatformDetector()
        self.normalizer = normalizer or ProductNormalizer()
        self.jobs = JobLifecycleManager(session_factory)
        self.store = ProductStore(session_factory)
        self.retries = retries
        self.retry_base_delay = retry_base_delay

    async def scrape_product(
        self,
        url: str,
        user_id: str,
        list_id: Optional[str] = None,
    ) -> ScrapeResult:
        """
        Scrape a product URL and save the result.

        Args:
            url: Product URL as submitted (scheme optional)
            user_id: Requesting user
            list_id: Optional list to add the product to

        Returns:
            ScrapeResult with the product id, job id and canonical product

        Raises:
            ScraperError: With a stable code describing the failure
        """
        normalized = normalize_url(url)
        if not is_valid_url(normalized):
            logger.info(f"Rejected invalid URL: {url!r}")
            metrics.scrape_requests_total.labels(platform="none", status="invalid").inc()
            metrics.scrape_errors_total.labels(code=ErrorCode.INVALID_URL.value).inc()
            raise ScraperError(f"Invalid URL: {url}", ErrorCode.INVALID_URL)

        job_id = await self.jobs.create(normalized, user_id)
        log = get_logger(__name__, job_id=job_id, url=normalized)
        platform = Platform.UNKNOWN
        start = time.monotonic()

        try:
            await self.jobs.mark_processing(job_id)

            platform = self.detector.detect(normalized)
            await self.jobs.set_platform(job_id, platform.value)
            log = get_logger(__name__, job_id=job_id, url=normalized, platform=platform.value)
            if platform == Platform.UNKNOWN:
                raise ScraperError(
                    f"Unsupported platform for URL: {normalized}",
                    ErrorCode.UNSUPPORTED_PLATFORM,
                )

            extractor = self.registry.resolve(platform)
            if extractor is None:
                raise ScraperError(
                    f"No scraper available for platform: {platform.value}",
                    ErrorCode.NO_SCRAPER,
                )

            log.info(f"Scraping {platform.value} product")
            raw = await extract_with_retries(
                extractor,
                normalized,
                retries=self.retries,
                base_delay=self.retry_base_delay,
            )
            product = self.normalizer.normalize(raw)

            product_id, created = await self.store.upsert(product)
            if list_id:
                await self.store.add_to_list(product_id, list_id)

            await self.jobs.complete(job_id, product_id)

        except asyncio.CancelledError:
            log.warning(f"Scrape of {normalized} cancelled")
            error = ScraperError("Scrape cancelled", ErrorCode.UNKNOWN_ERROR)
            # The task is already cancelled; shield so the terminal write still lands
            await asyncio.shield(self._record_failure(job_id, error, log))
            metrics.scrape_requests_total.labels(platform=platform.value, status="failed").inc()
            metrics.scrape_errors_total.labels(code=error.code.value).inc()
            raise

        except Exception as e:
            if isinstance(e, ScraperError):
                error = e
            elif isinstance(e, SQLAlchemyError):
                log.exception(f"Database error scraping {normalized}")
                error = PersistenceError(f"Database error: {e}", cause=e)
            else:
                log.exception(f"Unexpected error scraping {normalized}")
                error = ScraperError(f"Unexpected error: {e}", ErrorCode.UNKNOWN_ERROR)

            await self._record_failure(job_id, error, log)
            metrics.scrape_requests_total.labels(platform=platform.value, status="failed").inc()
            metrics.scrape_errors_total.labels(code=error.code.value).inc()

            if error is e:
                raise
            raise error from e

        elapsed = time.monotonic() - start
        metrics.scrape_requests_total.labels(platform=platform.value, status="completed").inc()
        log.info(
            f"{'Created' if created else 'Updated'} product {product_id} "
            f"from {platform.value} in {elapsed:.2f}s"
        )
        return ScrapeResult(product_id=product_id, job_id=job_id, product=product, created=created)

    async def _record_failure(self, job_id: str, error: ScraperError, log) -> None:
        """Write ``error`` to the job; a failing write is logged, the original error still propagates."""
        try:
            await self.jobs.fail(job_id, error.message, error.code.value)
        except Exception as fail_error:
            log.error(f"Could not record failure on job {job_id}: {fail_error}")

    async def close(self) -> None:
        await self.registry.close()
