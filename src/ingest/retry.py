"""Bounded exponential-backoff retry around extractor calls."""

import asyncio
import logging
import random
from typing import Optional

from src import metrics
from src.config import settings
from src.ingest.base import BaseExtractor, ExtractionError, RawProductData

logger = logging.getLogger(__name__)

MAX_JITTER_SECONDS = 0.5


async def extract_with_retries(
    extractor: BaseExtractor,
    url: str,
    retries: Optional[int] = None,
    base_delay: Optional[float] = None,
) -> RawProductData:
    """
    Run ``extractor.extract(url)``, re-attempting transient failures.

    Args:
        extractor: Extractor to call
        url: Normalized product URL
        retries: Re-attempts after the first call (default: settings.scraping_retry_count)
        base_delay: First backoff in seconds, doubled per attempt
            (default: settings.scraping_retry_base_delay)

    Returns:
        RawProductData from the first successful attempt

    Raises:
        ExtractionError: The last failure, or the first non-retryable one
    """
    retries = settings.scraping_retry_count if retries is None else max(0, retries)
    base_delay = settings.scraping_retry_base_delay if base_delay is None else base_delay
    attempts = retries + 1

    for attempt in range(attempts):
        try:
            return await extractor.extract(url)
        except ExtractionError as e:
            if not e.retryable or attempt == attempts - 1:
                if e.retryable:
                    logger.error(f"All {attempts} attempts failed for {url}: {e}")
                raise

            wait_time = base_delay * (2 ** attempt)
            if wait_time > 0:
                wait_time += random.uniform(0, MAX_JITTER_SECONDS)
            logger.warning(
                f"Retry {attempt + 1}/{retries} for {extractor.platform.value} {url} "
                f"after {wait_time:.1f}s: {e}"
            )
            metrics.extraction_retries_total.labels(platform=extractor.platform.value).inc()
            await asyncio.sleep(wait_time)
