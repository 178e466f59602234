"""Tests for the bounded retry wrapper around extractors."""

from unittest.mock import AsyncMock, patch

import pytest

from src.ingest.base import BaseExtractor, ExtractionError, Platform, RawProductData
from src.ingest.retry import extract_with_retries

URL = "https://cool-hats.myshopify.com/products/beanie"


class ScriptedExtractor(BaseExtractor):
    """Raises the scripted errors in order, then returns a product."""

    platform = Platform.SHOPIFY

    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    async def extract(self, url: str) -> RawProductData:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return RawProductData(url=url, platform=self.platform, name="Beanie")


def transient() -> ExtractionError:
    return ExtractionError(Platform.SHOPIFY, "HTTP 503", retryable=True)


def permanent() -> ExtractionError:
    return ExtractionError(Platform.SHOPIFY, "HTTP 404")


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    extractor = ScriptedExtractor([transient(), transient()])

    with patch("src.ingest.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        raw = await extract_with_retries(extractor, URL, retries=3, base_delay=1.0)

    assert raw.name == "Beanie"
    assert extractor.calls == 3
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_backoff_doubles_per_attempt():
    extractor = ScriptedExtractor([transient(), transient(), transient()])

    with patch("src.ingest.retry.asyncio.sleep", new_callable=AsyncMock) as sleep, \
         patch("src.ingest.retry.random.uniform", return_value=0.0):
        await extract_with_retries(extractor, URL, retries=3, base_delay=1.0)

    assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_gives_up_after_retry_budget():
    extractor = ScriptedExtractor([transient() for _ in range(5)])

    with pytest.raises(ExtractionError) as exc_info:
        await extract_with_retries(extractor, URL, retries=2, base_delay=0)

    assert extractor.calls == 3
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried():
    extractor = ScriptedExtractor([permanent()])

    with pytest.raises(ExtractionError):
        await extract_with_retries(extractor, URL, retries=3, base_delay=0)

    assert extractor.calls == 1


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    extractor = ScriptedExtractor([transient()])

    with pytest.raises(ExtractionError):
        await extract_with_retries(extractor, URL, retries=0, base_delay=0)

    assert extractor.calls == 1


@pytest.mark.asyncio
async def test_uses_configured_retry_count_by_default():
    extractor = ScriptedExtractor([transient() for _ in range(10)])

    with patch("src.ingest.retry.settings") as mock_settings:
        mock_settings.scraping_retry_count = 1
        mock_settings.scraping_retry_base_delay = 0
        with pytest.raises(ExtractionError):
            await extract_with_retries(extractor, URL)

    assert extractor.calls == 2
